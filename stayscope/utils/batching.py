"""
청크 분할 / 마감 시각 헬퍼
"""
import time
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    if size < 1:
        raise ValueError(f"chunk size must be positive: {size}")
    return [list(items[start:start + size]) for start in range(0, len(items), size)]


def deadline_after(timeout_seconds: Optional[float]) -> Optional[float]:
    """time.monotonic() 기준 마감 시각. timeout이 없으면 None"""
    if timeout_seconds is None:
        return None
    return time.monotonic() + timeout_seconds


def deadline_passed(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() >= deadline
