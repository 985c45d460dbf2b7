"""
크롤링 원본 매물(RawListing) → 저장 행 변환

숫자 누락은 0, 불리언 누락은 False, 문자열 누락은 빈 문자열로 채운다.
상세/가격/예약률 값은 중첩 객체(details/pricing/occupancy)를 먼저 보고, 없으면 최상위 키를 본다.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from stayscope.database.schema import DISCOUNT_WEEKS, PROPERTY_INSERT_COLUMNS


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None if value is None else int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "").rstrip("%")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "y", "yes", "있음"}
    return bool(value)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _int_or_zero(value: Any) -> int:
    return _to_int(value) or 0


def _float_or_zero(value: Any) -> float:
    return _to_float(value) or 0.0


def _section_value(listing: Dict[str, Any], section: str, key: str) -> Any:
    nested = listing.get(section)
    if isinstance(nested, dict) and nested.get(key) is not None:
        return nested.get(key)
    return listing.get(key)


def external_listing_id(listing: Dict[str, Any]) -> Optional[str]:
    """원본 시스템 식별자. 신규/기존 판별의 유일한 키다."""
    raw = listing.get("id")
    if raw is None:
        raw = listing.get("property_id")
    text = _to_text(raw)
    return text or None


def build_property_row(listing: Dict[str, Any], neighborhood_id: int, now: datetime) -> Dict[str, Any]:
    row = {
        "neighborhood_id": neighborhood_id,
        "external_id": external_listing_id(listing),
        "name": _to_text(listing.get("name") or listing.get("title")),
        "address": _to_text(listing.get("address")),
        "building_type": _to_text(listing.get("building_type")),
        "latitude": _to_float(listing.get("latitude")),
        "longitude": _to_float(listing.get("longitude")),
        "crawled_at": _to_datetime(listing.get("crawled_at")) or now,
    }
    return {column: row[column] for column in PROPERTY_INSERT_COLUMNS}


def build_update_fields(
    listing: Dict[str, Any],
    now: datetime,
    neighborhood_id: Optional[int] = None,
) -> Dict[str, Any]:
    """업데이트 대상 필드 (neighborhood_id는 위치 이전 매물일 때만 포함)"""
    fields: Dict[str, Any] = {
        "name": _to_text(listing.get("name") or listing.get("title")),
        "address": _to_text(listing.get("address")),
        "building_type": _to_text(listing.get("building_type")),
        "latitude": _to_float(listing.get("latitude")),
        "longitude": _to_float(listing.get("longitude")),
        "crawled_at": _to_datetime(listing.get("crawled_at")) or now,
        "updated_at": now,
    }
    if neighborhood_id is not None:
        fields["neighborhood_id"] = neighborhood_id
    return fields


def _primary_image_url(listing: Dict[str, Any]) -> Optional[str]:
    images = listing.get("images")
    if not isinstance(images, list) or not images:
        return None
    first = images[0]
    if isinstance(first, dict):
        first = first.get("url") or first.get("image_url")
    url = _to_text(first)
    return url or None


def build_sub_entity_rows(listing: Dict[str, Any], property_id: int) -> Dict[str, List[Dict[str, Any]]]:
    """신규 매물 1건에서 6개 하위 테이블 행을 만든다. 이미지/리뷰가 없으면 해당 테이블 행은 없다."""
    details = {
        "property_id": property_id,
        "room_count": _int_or_zero(_section_value(listing, "details", "room_count")),
        "bathroom_count": _int_or_zero(_section_value(listing, "details", "bathroom_count")),
        "kitchen_count": _int_or_zero(_section_value(listing, "details", "kitchen_count")),
        "living_room_count": _int_or_zero(_section_value(listing, "details", "living_room_count")),
        "size_pyeong": _float_or_zero(_section_value(listing, "details", "size_pyeong")),
        "has_elevator": _to_bool(_section_value(listing, "details", "has_elevator")),
        "parking_info": _to_text(_section_value(listing, "details", "parking_info")),
        "is_super_host": _to_bool(_section_value(listing, "details", "is_super_host")),
    }

    pricing = {
        "property_id": property_id,
        "weekly_price": _int_or_zero(_section_value(listing, "pricing", "weekly_price")),
        "weekly_maintenance": _int_or_zero(_section_value(listing, "pricing", "weekly_maintenance")),
        "cleaning_fee": _int_or_zero(_section_value(listing, "pricing", "cleaning_fee")),
    }
    for weeks in DISCOUNT_WEEKS:
        key = f"discount_{weeks}weeks"
        pricing[key] = _float_or_zero(_section_value(listing, "pricing", key))

    occupancy = {
        "property_id": property_id,
        "occupancy_rate": _float_or_zero(_section_value(listing, "occupancy", "occupancy_rate")),
        "occupancy_2rate": _float_or_zero(_section_value(listing, "occupancy", "occupancy_2rate")),
        "occupancy_3rate": _float_or_zero(_section_value(listing, "occupancy", "occupancy_3rate")),
    }

    rows: Dict[str, List[Dict[str, Any]]] = {
        "property_details": [details],
        "property_pricing": [pricing],
        "property_occupancy": [occupancy],
        "property_images": [],
        "property_reviews": [],
        "property_review_summary": [],
    }

    image_url = _primary_image_url(listing)
    if image_url:
        rows["property_images"].append(
            {
                "property_id": property_id,
                "image_url": image_url,
                "is_primary": True,
                "display_order": 0,
            }
        )

    review_info = listing.get("review_info")
    if isinstance(review_info, dict):
        for review in review_info.get("review_details") or []:
            if not isinstance(review, dict):
                continue
            rows["property_reviews"].append(
                {
                    "property_id": property_id,
                    "user_name": _to_text(review.get("user_name")),
                    "review_date": _to_datetime(review.get("review_date")),
                    "score": _float_or_zero(review.get("score")),
                    "review_text": _to_text(review.get("text") or review.get("review_text")),
                }
            )

        rows["property_review_summary"].append(
            {
                "property_id": property_id,
                "review_count": _int_or_zero(review_info.get("review_count")),
                "average_score": _float_or_zero(
                    review_info.get("review_score")
                    if review_info.get("review_score") is not None
                    else review_info.get("average_score")
                ),
                "latest_review_date": _to_datetime(review_info.get("latest_review_date")),
            }
        )

    return rows
