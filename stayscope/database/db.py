"""
MySQL 데이터베이스 관리 모듈
"""
import os
import logging
from contextlib import contextmanager
import pymysql
from pymysql.cursors import DictCursor

logger = logging.getLogger(__name__)

# MySQL 연결 설정 (환경 변수에서 가져오기)
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "3306"))
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "stayscope")
DB_CHARSET = os.getenv("DB_CHARSET", "utf8mb4")


@contextmanager
def get_db_connection():
    """데이터베이스 연결 컨텍스트 매니저

    호출마다 새 연결을 열고, 블록이 정상 종료되면 commit, 예외 시 rollback 한다.
    스레드 간에 연결을 공유하지 않으므로 동시 청크 작업은 각자 이 함수를 호출한다.
    """
    if not _initializing:
        ensure_database_initialized()

    conn = None
    try:
        conn = pymysql.connect(
            host=DB_HOST,
            port=DB_PORT,
            user=DB_USER,
            password=DB_PASSWORD,
            database=DB_NAME,
            charset=DB_CHARSET,
            cursorclass=DictCursor,
            autocommit=False,
            connect_timeout=5
        )
        yield conn
        conn.commit()
    except Exception:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            conn.close()


def init_database():
    """데이터베이스 및 공용 테이블 초기화

    매물/지역 테이블은 MySQLPropertyStore.ensure_tables()가 만든다.
    """
    conn = pymysql.connect(
        host=DB_HOST,
        port=DB_PORT,
        user=DB_USER,
        password=DB_PASSWORD,
        charset=DB_CHARSET,
        connect_timeout=5
    )
    try:
        with conn.cursor() as cursor:
            cursor.execute(
                f"CREATE DATABASE IF NOT EXISTS {DB_NAME} "
                f"CHARACTER SET {DB_CHARSET} COLLATE {DB_CHARSET}_unicode_ci"
            )
        conn.commit()
    finally:
        conn.close()

    with get_db_connection() as conn:
        cursor = conn.cursor()

        # 시스템 로그 테이블 (stayscope.utils.logger)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS system_logs (
                id BIGINT AUTO_INCREMENT PRIMARY KEY,
                module_name VARCHAR(100) NOT NULL,
                log_level VARCHAR(20) NOT NULL,
                log_message TEXT NOT NULL,
                error_type VARCHAR(255),
                stack_trace TEXT,
                execution_time_ms INT,
                metadata JSON,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                INDEX idx_module_level (module_name, log_level),
                INDEX idx_created_at (created_at)
            ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci
        """)


_db_initialized = False
_initializing = False  # 재귀 호출 방지 플래그


def ensure_database_initialized():
    """데이터베이스가 초기화되었는지 확인하고, 필요시 초기화"""
    global _db_initialized, _initializing

    if _db_initialized or _initializing:
        return

    _initializing = True
    try:
        init_database()
        _db_initialized = True
    except Exception as e:
        # 초기화 실패해도 서비스 시작은 계속한다. 실제 쿼리 시점에 다시 오류가 드러난다.
        logger.warning(f"데이터베이스 초기화 실패: {e}")
    finally:
        _initializing = False
