"""
적재 실행 로그 유틸리티
파일 로그(stayscope 로거)와 system_logs 테이블 기록을 함께 남긴다.

적재 요약을 그대로 metadata로 넘길 수 있다. 목록 값(invalid, chunk_errors,
processing_results 등)은 건수만 `<키>_count`로 남기고 None 값은 뺀다.
"""
import json
import logging
import traceback
from typing import Any, Dict, Optional

from stayscope.database.db import get_db_connection

_logger = logging.getLogger('stayscope')


def compact_run_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """적재 요약 dict를 system_logs에 넣을 크기로 줄인다."""
    if not metadata:
        return None

    compact: Dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            compact[f"{key}_count"] = len(value)
        else:
            compact[key] = value
    return compact or None


def _write_system_log(
    module_name: str,
    log_level: str,
    log_message: str,
    error_type: Optional[str] = None,
    stack_trace: Optional[str] = None,
    execution_time_ms: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
):
    compact = compact_run_metadata(metadata)
    metadata_json = json.dumps(compact, ensure_ascii=False, default=str) if compact else None

    try:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO system_logs (
                    module_name, log_level, log_message, error_type,
                    stack_trace, execution_time_ms, metadata
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            """, (
                module_name,
                log_level,
                log_message,
                error_type,
                stack_trace,
                execution_time_ms,
                metadata_json
            ))
    except Exception as e:
        # DB 기록 실패는 파일 로그에만 남긴다
        _logger.error(f"Failed to write system log: {e}", exc_info=True)


def log_info(
    module_name: str,
    message: str,
    execution_time_ms: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
):
    _logger.info(f"[{module_name}] {message}")
    _write_system_log(module_name, "INFO", message, execution_time_ms=execution_time_ms, metadata=metadata)


def log_error(
    module_name: str,
    message: str,
    error: Optional[Exception] = None,
    execution_time_ms: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
):
    """ERROR 레벨 로그. error가 있으면 타입과 스택 트레이스도 기록"""
    _logger.error(f"[{module_name}] {message}", exc_info=error)

    error_type = type(error).__name__ if error else None
    stack_trace = "".join(traceback.format_exception(type(error), error, error.__traceback__)) if error else None

    _write_system_log(
        module_name,
        "ERROR",
        message,
        error_type=error_type,
        stack_trace=stack_trace,
        execution_time_ms=execution_time_ms,
        metadata=metadata
    )
