"""
숙소 적재 파이프라인 예외 정의

청크/테이블 단위 실패는 예외로 전파하지 않고 결과 요약에 수집한다.
여기 정의된 예외 중 run 전체를 중단시키는 것은 시/도(city) 계층 해석 실패뿐이다.
"""
from typing import Optional


class IngestionError(Exception):
    """적재 파이프라인 기본 예외"""


class DuplicateKeyError(IngestionError):
    """저장소 unique 제약 위반 (다른 저장소 오류와 구분된다)"""


class HierarchyResolutionError(IngestionError):
    """지역 계층(city/district/neighborhood) 조회 또는 생성 실패"""

    def __init__(self, level: str, name: str, message: Optional[str] = None):
        self.level = level
        self.name = name
        super().__init__(message or f"{level} 계층 해석 실패: {name}")

    @property
    def is_fatal(self) -> bool:
        return self.level == "city"


class HierarchyConflictError(HierarchyResolutionError):
    """동시 생성 충돌 후 재조회에서도 행을 찾지 못한 경우"""

    def __init__(self, level: str, name: str):
        super().__init__(
            level,
            name,
            f"{level} 생성 충돌 후 재조회 실패: {name}",
        )


class ExistenceLookupError(IngestionError):
    """기존 매물 조회 청크 실패. 분류를 신뢰할 수 없으므로 해당 그룹은 쓰지 않는다."""


class ChunkWriteError(IngestionError):
    """core 매물 insert/update 청크 실패"""

    def __init__(self, operation: str, chunk_index: int, size: int, cause: Exception):
        self.operation = operation
        self.chunk_index = chunk_index
        self.size = size
        self.cause = cause
        super().__init__(f"{operation} 청크 {chunk_index} ({size}건) 실패: {cause}")


class SubEntityWriteError(IngestionError):
    """하위 테이블 일괄 삽입 실패. core 매물 행은 그대로 커밋된 상태로 남는다."""

    def __init__(self, table: str, cause: Exception):
        self.table = table
        self.cause = cause
        super().__init__(f"{table} 삽입 실패: {cause}")
