"""
매물 예약률 수동 수정

적재 파이프라인은 기존 매물의 하위 데이터를 건드리지 않으므로, 예약률 보정은 이 경로로만 한다.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from stayscope.database.property_store import get_property_store

logger = logging.getLogger(__name__)

OCCUPANCY_FIELDS = {
    "occupancy_rate": "1개월",
    "occupancy_2rate": "2개월",
    "occupancy_3rate": "3개월",
}


class PropertyNotFoundError(LookupError):
    def __init__(self, property_id: int):
        self.property_id = property_id
        super().__init__(f"매물을 찾을 수 없습니다: {property_id}")


def validate_occupancy_rates(rates: Dict[str, Any]) -> Dict[str, float]:
    """세 예약률 모두 0~100 사이 숫자여야 한다."""
    validated: Dict[str, float] = {}
    for key, label in OCCUPANCY_FIELDS.items():
        value = rates.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{label} 예약률은 0-100 사이의 숫자여야 합니다.")
        if value < 0 or value > 100:
            raise ValueError(f"{label} 예약률은 0-100 사이의 숫자여야 합니다.")
        validated[key] = float(value)
    return validated


def update_occupancy(property_id: int, rates: Dict[str, Any], store=None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    매물 예약률을 upsert 합니다.

    Raises:
        ValueError: 예약률 범위 오류
        PropertyNotFoundError: 매물 id가 없을 때
    """
    store = store or get_property_store()
    validated = validate_occupancy_rates(rates)

    if store.find_property(property_id) is None:
        raise PropertyNotFoundError(property_id)

    updated_at = now or datetime.now()
    store.upsert_occupancy(property_id, validated, updated_at)
    logger.info("예약률 수정 완료: property_id=%s, %s", property_id, validated)

    return {
        "success": True,
        "property_id": property_id,
        **validated,
        "updated_at": updated_at.isoformat(),
    }
