"""
시/도 → 시/군/구 → 동/읍/면 계층 get-or-create

조회 후 없으면 생성한다. 트랜잭션으로 묶지 않기 때문에 같은 신규 지역을 동시에 적재하면
insert가 unique 위반으로 실패할 수 있는데, 이 경우 다른 실행이 먼저 만든 것으로 보고 한 번 더 조회한다.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from stayscope.ingestion.errors import (
    DuplicateKeyError,
    HierarchyConflictError,
    HierarchyResolutionError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionIds:
    city_id: int
    district_id: int
    neighborhood_id: int


class RegionHierarchyResolver:
    """
    한 번의 적재 실행(run) 동안 시/도, 시/군/구 id를 캐시한다.
    동/읍/면은 매번 동기화 정보(last_synced_at, property_count)를 갱신하므로 캐시하지 않는다.
    """

    def __init__(self, store):
        self.store = store
        self._city_cache: Dict[str, int] = {}
        self._district_cache: Dict[Tuple[int, str], int] = {}

    def get_or_create(self, level: str, name: str, parent_id: Optional[int] = None) -> int:
        try:
            node_id = self.store.find_region_node(level, name, parent_id)
            if node_id is not None:
                return node_id

            try:
                node_id = self.store.insert_region_node(level, name, parent_id)
                logger.info("%s 생성: %s (id=%s)", level, name, node_id)
                return node_id
            except DuplicateKeyError:
                logger.info("%s 동시 생성 감지, 재조회: %s", level, name)
                node_id = self.store.find_region_node(level, name, parent_id)
                if node_id is None:
                    raise HierarchyConflictError(level, name)
                return node_id
        except HierarchyResolutionError:
            raise
        except Exception as e:
            raise HierarchyResolutionError(level, name, f"{level} 조회/생성 실패 ({name}): {e}") from e

    def resolve_city(self, name: str) -> int:
        cached = self._city_cache.get(name)
        if cached is not None:
            return cached
        city_id = self.get_or_create("city", name)
        self._city_cache[name] = city_id
        return city_id

    def resolve_district(self, city_id: int, name: str) -> int:
        key = (city_id, name)
        cached = self._district_cache.get(key)
        if cached is not None:
            return cached
        district_id = self.get_or_create("district", name, city_id)
        self._district_cache[key] = district_id
        return district_id

    def resolve(
        self,
        province: str,
        district: str,
        neighborhood: str,
        property_count: int,
        synced_at: Optional[datetime] = None,
    ) -> RegionIds:
        """
        3단계를 순서대로 해석하고 동/읍/면 동기화 정보를 갱신한다.

        Args:
            property_count: 이번 배치 크기 (실제 누적 매물 수가 아님)

        Raises:
            HierarchyResolutionError: level == "city"인 경우 실행 전체가 중단되어야 한다
        """
        city_id = self.resolve_city(province)
        district_id = self.resolve_district(city_id, district)
        neighborhood_id = self.get_or_create("neighborhood", neighborhood, district_id)

        try:
            self.store.touch_neighborhood(neighborhood_id, property_count, synced_at or datetime.now())
        except Exception as e:
            raise HierarchyResolutionError(
                "neighborhood", neighborhood, f"동/읍/면 동기화 정보 갱신 실패 ({neighborhood}): {e}"
            ) from e

        return RegionIds(city_id=city_id, district_id=district_id, neighborhood_id=neighborhood_id)
