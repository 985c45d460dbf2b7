"""
숙소 적재 파이프라인 설정 파일 로더 및 검증 모듈
"""
import json
import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, model_validator
import logging

logger = logging.getLogger(__name__)


# ============================================
# Pydantic 모델 정의 (설정 스키마 검증)
# ============================================

class IngestionConfig(BaseModel):
    """적재 파이프라인 설정"""
    chunk_size: int = Field(default=1000, ge=1, le=10000, description="IN 조회/일괄 삽입/업데이트 청크 크기")
    update_max_workers: int = Field(default=16, ge=1, le=64, description="업데이트 청크 내 동시 실행 수")
    fanout_max_workers: int = Field(default=6, ge=1, le=6, description="하위 테이블 동시 삽입 수")
    lookup_max_workers: int = Field(default=4, ge=1, le=32, description="기존 매물 조회 청크 동시 실행 수")
    default_timeout_seconds: Optional[float] = Field(default=None, gt=0, description="호출자 타임아웃 기본값 (초)")


class StayscopeConfig(BaseModel):
    """전체 설정 모델"""
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)

    @model_validator(mode='after')
    def apply_env_overrides(self):
        """환경 변수 오버라이드 적용 (INGESTION_CHUNK_SIZE, INGESTION_TIMEOUT_SECONDS)"""
        overrides = {}
        chunk_size = os.getenv("INGESTION_CHUNK_SIZE", "").strip()
        if chunk_size:
            overrides["chunk_size"] = int(chunk_size)
        timeout = os.getenv("INGESTION_TIMEOUT_SECONDS", "").strip()
        if timeout:
            overrides["default_timeout_seconds"] = float(timeout)

        if overrides:
            self.ingestion = IngestionConfig(**{**self.ingestion.model_dump(), **overrides})
        return self


# ============================================
# 설정 파일 로더 클래스
# ============================================

class ConfigLoader:
    """설정 파일 로더 및 검증 클래스"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: 설정 파일 경로 (None이면 STAYSCOPE_CONFIG_PATH 또는 기본 경로 사용)
        """
        if config_path is None:
            config_path = os.getenv("STAYSCOPE_CONFIG_PATH") or (
                Path(__file__).parent / "ingestion_config.json"
            )

        self.config_path = Path(config_path)
        self._config: Optional[StayscopeConfig] = None

    def load(self) -> StayscopeConfig:
        """
        설정 파일을 로드하고 검증합니다.

        Raises:
            FileNotFoundError: 설정 파일이 없을 때
            ValueError: 설정 파일 검증 실패 시
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_dict = json.load(f)

            self._config = StayscopeConfig(**config_dict)
            logger.info(f"설정 파일 로드 완료: {self.config_path}")
            return self._config

        except json.JSONDecodeError as e:
            raise ValueError(f"설정 파일 JSON 파싱 오류: {e}")
        except Exception as e:
            raise ValueError(f"설정 파일 검증 오류: {e}")

    def get_config(self) -> StayscopeConfig:
        """캐시된 설정을 반환합니다. 없으면 로드합니다."""
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> StayscopeConfig:
        """설정 파일을 다시 로드합니다."""
        self._config = None
        return self.load()


# ============================================
# 전역 설정 로더 인스턴스
# ============================================

_global_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """전역 설정 로더 인스턴스를 반환합니다."""
    global _global_loader
    if _global_loader is None:
        _global_loader = ConfigLoader()
    return _global_loader


def get_config() -> StayscopeConfig:
    return get_config_loader().get_config()


def reload_config() -> StayscopeConfig:
    return get_config_loader().reload()
