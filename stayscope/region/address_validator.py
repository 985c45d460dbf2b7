"""
매물 배치 주소 검증: 파싱 결과로 유효/무효를 나눈다.
"""
import logging
from typing import Any, Dict, Iterable, List

from stayscope.region.address_parser import parse_address

logger = logging.getLogger(__name__)

PARSE_FAILED = "parse failed"
INCOMPLETE_ADDRESS = "incomplete address"


def validate_parsed_addresses(listings: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    유효 조건: 시/도가 있고, 시/군/구 또는 동/읍/면 중 하나 이상이 있다.

    Returns:
        {
            "valid": [listing + {"parsed_address": ParsedAddress}],
            "invalid": [listing + {"error": "parse failed" | "incomplete address"}],
            "summary": {"total", "valid", "invalid"},
        }
    """
    valid: List[Dict[str, Any]] = []
    invalid: List[Dict[str, Any]] = []
    total = 0

    for listing in listings:
        total += 1
        parsed = parse_address(listing.get("address") or "")
        if parsed and parsed.is_complete:
            valid.append({**listing, "parsed_address": parsed})
        else:
            invalid.append({**listing, "error": INCOMPLETE_ADDRESS if parsed else PARSE_FAILED})

    if invalid:
        logger.info("주소 검증: 전체 %s건 중 무효 %s건", total, len(invalid))

    return {
        "valid": valid,
        "invalid": invalid,
        "summary": {
            "total": total,
            "valid": len(valid),
            "invalid": len(invalid),
        },
    }
