"""
시/도 명칭 매핑
구 명칭/약칭 → 현행 공식 명칭, 그리고 그 역방향 조회
"""
from typing import Dict, List, Optional, Tuple

# 현행 공식 시/도 명칭
CANONICAL_PROVINCES: Tuple[str, ...] = (
    "서울특별시",
    "부산광역시",
    "대구광역시",
    "인천광역시",
    "광주광역시",
    "대전광역시",
    "울산광역시",
    "세종특별자치시",
    "경기도",
    "강원특별자치도",
    "충청북도",
    "충청남도",
    "전북특별자치도",
    "전라남도",
    "경상북도",
    "경상남도",
    "제주특별자치도",
)

# 개칭된 시/도 (구 명칭 → 현행 명칭)
PROVINCE_RENAMES: Dict[str, str] = {
    "강원도": "강원특별자치도",
    "전라북도": "전북특별자치도",
    "제주도": "제주특별자치도",
}

# 약칭 (주소 앞머리에 흔히 쓰이는 형태)
PROVINCE_SHORT_NAMES: Dict[str, str] = {
    "서울": "서울특별시",
    "서울시": "서울특별시",
    "부산": "부산광역시",
    "부산시": "부산광역시",
    "대구": "대구광역시",
    "대구시": "대구광역시",
    "인천": "인천광역시",
    "인천시": "인천광역시",
    "광주": "광주광역시",
    "대전": "대전광역시",
    "대전시": "대전광역시",
    "울산": "울산광역시",
    "울산시": "울산광역시",
    "세종": "세종특별자치시",
    "세종시": "세종특별자치시",
    "경기": "경기도",
    "강원": "강원특별자치도",
    "충북": "충청북도",
    "충남": "충청남도",
    "전북": "전북특별자치도",
    "전남": "전라남도",
    "경북": "경상북도",
    "경남": "경상남도",
    "제주": "제주특별자치도",
}

METROPOLITAN_SUFFIXES: Tuple[str, ...] = ("특별시", "광역시", "특별자치시")

_CANONICAL_BY_NAME: Dict[str, str] = {name: name for name in CANONICAL_PROVINCES}
_CANONICAL_BY_NAME.update(PROVINCE_RENAMES)
_CANONICAL_BY_NAME.update(PROVINCE_SHORT_NAMES)

LEGACY_NAMES_BY_CANONICAL: Dict[str, List[str]] = {}
for _legacy, _canonical in PROVINCE_RENAMES.items():
    LEGACY_NAMES_BY_CANONICAL.setdefault(_canonical, []).append(_legacy)

# 띄어쓰기 없는 주소에서 앞머리 매칭에 쓰는 전체 명칭 (긴 것 우선)
FULL_PROVINCE_NAMES_SORTED: List[str] = sorted(
    [*CANONICAL_PROVINCES, *PROVINCE_RENAMES.keys()],
    key=lambda name: (-len(name), name),
)


def lookup_canonical_province(name: Optional[str]) -> Optional[str]:
    """알려진 명칭이면 현행 공식 명칭, 아니면 None"""
    return _CANONICAL_BY_NAME.get((name or "").strip())


def canonical_province_name(name: Optional[str]) -> str:
    """현행 공식 명칭으로 변환. 알 수 없는 명칭은 공백만 정리해 그대로 돌려준다."""
    stripped = (name or "").strip()
    return _CANONICAL_BY_NAME.get(stripped, stripped)


def legacy_province_names(name: Optional[str]) -> List[str]:
    """현행 명칭에 대응하는 구 명칭 목록 (개칭 이력이 없으면 빈 목록)"""
    return list(LEGACY_NAMES_BY_CANONICAL.get(canonical_province_name(name), []))


def province_names_match(left: Optional[str], right: Optional[str]) -> bool:
    """구 명칭/현행 명칭/약칭을 모두 같은 시/도로 취급해 비교"""
    left_name = canonical_province_name(left)
    return bool(left_name) and left_name == canonical_province_name(right)


def is_metropolitan(name: Optional[str]) -> bool:
    return canonical_province_name(name).endswith(METROPOLITAN_SUFFIXES)
