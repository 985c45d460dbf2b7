"""
파싱된 매물을 (시/군/구, 동/읍/면) 단위로 묶는다.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from stayscope.region.province_names import canonical_province_name, province_names_match


@dataclass
class RegionGroup:
    province: str
    district: str
    neighborhood: str
    listings: List[Dict[str, Any]] = field(default_factory=list)
    new_count: int = 0
    update_count: int = 0

    @property
    def label(self) -> str:
        return " ".join(part for part in (self.district, self.neighborhood) if part)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "province": self.province,
            "district": self.district,
            "neighborhood": self.neighborhood,
            "total": len(self.listings),
            "new_count": self.new_count,
            "update_count": self.update_count,
        }


def group_by_region(valid_listings: List[Dict[str, Any]], target_province: str) -> List[RegionGroup]:
    """
    target_province에 속한 매물만 (district, neighborhood) 키로 묶는다.
    시/도 비교는 구 명칭과 현행 명칭을 같은 것으로 본다. 그룹 순서는 처음 등장한 순서.
    """
    province = canonical_province_name(target_province)
    groups: Dict[Tuple[str, str], RegionGroup] = {}

    for listing in valid_listings:
        parsed = listing["parsed_address"]
        if not province_names_match(parsed.province, target_province):
            continue

        key = (parsed.district or "", parsed.neighborhood or "")
        group = groups.get(key)
        if group is None:
            group = RegionGroup(province=province, district=key[0], neighborhood=key[1])
            groups[key] = group
        group.listings.append(listing)

    return list(groups.values())
