"""
설정 관리 모듈
"""
from stayscope.config.config_loader import (
    get_config,
    reload_config,
    get_config_loader,
    ConfigLoader,
    IngestionConfig,
    StayscopeConfig,
)

__all__ = [
    'get_config',
    'reload_config',
    'get_config_loader',
    'ConfigLoader',
    'IngestionConfig',
    'StayscopeConfig',
]
