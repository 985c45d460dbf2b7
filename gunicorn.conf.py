# Gunicorn 설정 파일
import os

bind = "0.0.0.0:8991"
workers = 4
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 1000
max_requests_jitter = 100
timeout = 300  # 5분 (300초) - 수천 건 지역 일괄 적재 대비
keepalive = 2
preload_app = True

# 로그 설정
loglevel = "info"
accesslog = os.path.join(os.path.dirname(__file__), "logs", "access.log")
errorlog = os.path.join(os.path.dirname(__file__), "logs", "error.log")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# 로그 파일 디렉토리 생성
log_dir = os.path.join(os.path.dirname(__file__), "logs")
os.makedirs(log_dir, exist_ok=True)

# 프로세스 ID 파일
pidfile = os.path.join(log_dir, "gunicorn.pid")

# 데몬 모드 비활성화 (터미널에서 실행)
daemon = False

logconfig = None


def when_ready(server):
    """Gunicorn이 준비되었을 때 호출되는 훅 (메인 프로세스에서만 실행)"""
    import logging
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    # 워커 포크 전에 설정 파일 검증
    try:
        project_root = os.path.dirname(os.path.abspath(__file__))
        if project_root not in sys.path:
            sys.path.insert(0, project_root)

        from stayscope.config import get_config
        config = get_config()
        logger.info(f"[Gunicorn when_ready] 적재 설정 로드 완료 (chunk_size={config.ingestion.chunk_size})")
    except Exception as e:
        logger.error(f"[Gunicorn when_ready] 적재 설정 로드 실패: {e}", exc_info=True)
