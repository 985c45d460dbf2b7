"""
자유 형식 주소 문자열 → 시/도, 시/군/구, 동/읍/면 3단계 지역 파싱

규칙은 아래 순서로만 적용된다.
1. 시/도: 주소 앞머리 토큰 (알려진 명칭/약칭/구 명칭 → 현행 명칭, 또는 시/도 접미사 형태)
2. 시/군/구: 시/도 다음 토큰. 일반시+자치구(수원시 팔달구)는 하나로 묶는다.
   특별시/광역시는 띄어쓰기 없는 "강남구역삼동" 형태와 뒤쪽 토큰의 "○○구"를 한 번 더 찾는다.
3. 동/읍/면: 숫자+가(을지로5가) 우선, 이후 동 → 읍 → 면 → 리 순. 건물 동 표기는 제외.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

from stayscope.region.province_names import (
    FULL_PROVINCE_NAMES_SORTED,
    canonical_province_name,
    is_metropolitan,
    lookup_canonical_province,
)

NEIGHBORHOOD_SUFFIXES: Tuple[str, ...] = ("동", "읍", "면", "리")

# 건물 내부 동 표기 (동/읍/면 후보에서 제외)
EXCLUDED_NEIGHBORHOOD_LABELS = frozenset(
    [
        "A동", "B동", "C동", "D동", "E동",
        "가동", "나동", "다동", "라동",
        "1동", "2동", "3동", "4동", "5동", "6동", "7동", "8동", "9동",
        *[f"{number}동" for number in range(101, 116)],
    ]
)

_TOKEN_SPLITTER = re.compile(r"[\s,()\[\]{}·]+")
_HANGUL = re.compile(r"[가-힣]")
_PROVINCE_TOKEN_PATTERN = re.compile(r"^[가-힣]+(?:특별자치시|특별자치도|특별시|광역시|도)$")
_GLUED_PROVINCE_PATTERN = re.compile(r"^([가-힣]+?(?:특별자치시|특별자치도|특별시|광역시))(.+)$")
_DISTRICT_TOKEN_PATTERN = re.compile(r"^[가-힣]+(?:시|군|구)$")
_AUTONOMOUS_GU_PATTERN = re.compile(r"^[가-힣]+구$")
_GLUED_GU_PATTERN = re.compile(r"^([가-힣]+?구)(.*)$")
_NUMBERED_GA_PATTERN = re.compile(r"^[가-힣]+\d+가$")
_NEIGHBORHOOD_PATTERNS = {
    suffix: re.compile(rf"^[가-힣]+\d*{suffix}$") for suffix in NEIGHBORHOOD_SUFFIXES
}
_BUILDING_LABEL_PATTERN = re.compile(r"^[A-Za-z]?\d*동$|\d{3,}동$")
_NON_ADDRESS_TOKENS = frozenset(["대한민국"])


@dataclass(frozen=True)
class ParsedAddress:
    province: str
    district: str
    neighborhood: str
    full_address: str

    @property
    def is_complete(self) -> bool:
        return bool(self.province) and bool(self.district or self.neighborhood)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _tokenize(address: str) -> List[str]:
    return [token for token in _TOKEN_SPLITTER.split(address) if token]


def _split_province(tokens: List[str]) -> Tuple[Optional[str], List[str]]:
    idx = 0
    # 우편번호 등 한글 없는 머리 토큰은 건너뛴다
    while idx < len(tokens) and (
        not _HANGUL.search(tokens[idx]) or tokens[idx] in _NON_ADDRESS_TOKENS
    ):
        idx += 1
    if idx >= len(tokens):
        return None, []

    head, rest = tokens[idx], tokens[idx + 1:]
    known = lookup_canonical_province(head)
    if known:
        return known, rest
    if _PROVINCE_TOKEN_PATTERN.match(head):
        return head, rest

    # 띄어쓰기 없는 주소: "서울특별시강남구..."
    for name in FULL_PROVINCE_NAMES_SORTED:
        if head.startswith(name) and len(head) > len(name):
            return canonical_province_name(name), [head[len(name):], *rest]
    glued = _GLUED_PROVINCE_PATTERN.match(head)
    if glued:
        return glued.group(1), [glued.group(2), *rest]
    return None, []


def _split_district(province: str, tokens: List[str]) -> Tuple[str, List[str]]:
    if not tokens:
        return "", tokens

    head = tokens[0]
    if _DISTRICT_TOKEN_PATTERN.match(head):
        if head.endswith("시") and len(tokens) > 1 and _AUTONOMOUS_GU_PATTERN.match(tokens[1]):
            return f"{head} {tokens[1]}", tokens[2:]
        return head, tokens[1:]

    if is_metropolitan(province):
        glued = _GLUED_GU_PATTERN.match(head)
        if glued:
            remainder = [glued.group(2)] if glued.group(2) else []
            return glued.group(1), [*remainder, *tokens[1:]]

        # 도로명이 앞선 주소: "서울특별시 테헤란로 123 강남구"
        for idx, token in enumerate(tokens[1:], start=1):
            if _AUTONOMOUS_GU_PATTERN.match(token) and not _BUILDING_LABEL_PATTERN.search(token):
                return token, [*tokens[:idx], *tokens[idx + 1:]]
    return "", tokens


def is_excluded_neighborhood(candidate: str) -> bool:
    return candidate in EXCLUDED_NEIGHBORHOOD_LABELS or bool(_BUILDING_LABEL_PATTERN.search(candidate))


def _find_neighborhood(tokens: List[str]) -> str:
    for token in tokens:
        if _NUMBERED_GA_PATTERN.match(token) and not is_excluded_neighborhood(token):
            return token

    for suffix in NEIGHBORHOOD_SUFFIXES:
        pattern = _NEIGHBORHOOD_PATTERNS[suffix]
        for token in tokens:
            if pattern.match(token) and not is_excluded_neighborhood(token):
                return token
    return ""


def parse_address(address: Any) -> Optional[ParsedAddress]:
    """
    주소를 3단계 지역으로 파싱합니다.

    Returns:
        시/도를 찾지 못하면 None. 시/군/구 또는 동/읍/면을 찾지 못한 경우에는
        해당 필드가 빈 문자열인 (불완전한) ParsedAddress.
    """
    if not address or not isinstance(address, str):
        return None

    clean_address = " ".join(address.split())
    province, remainder = _split_province(_tokenize(clean_address))
    if not province:
        return None

    district, remainder = _split_district(province, remainder)
    neighborhood = _find_neighborhood(remainder)

    return ParsedAddress(
        province=province,
        district=district,
        neighborhood=neighborhood,
        full_address=clean_address,
    )


def resolve_address(address: Any) -> Optional[Dict[str, Any]]:
    """지역 탐색 화면용 주소 해석 진입점"""
    parsed = parse_address(address)
    return parsed.to_dict() if parsed else None
