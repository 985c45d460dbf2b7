"""
기존 매물 판별: external_id 기준으로 신규(to_insert) / 기존(to_update)을 나눈다.
"""
from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from stayscope.ingestion.errors import ExistenceLookupError
from stayscope.ingestion.listing_normalizer import external_listing_id
from stayscope.utils.batching import chunked

logger = logging.getLogger(__name__)


@dataclass
class Classification:
    to_insert: List[Dict[str, Any]] = field(default_factory=list)
    to_update: List[Dict[str, Any]] = field(default_factory=list)
    # external_id -> {"id": surrogate id, "neighborhood_id": 현재 소속 동}
    existing: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    moved_ids: Set[str] = field(default_factory=set)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.to_insert) + len(self.to_update)


class ExistenceClassifier:
    def __init__(self, store, chunk_size: int = 1000, max_workers: int = 4):
        self.store = store
        self.chunk_size = chunk_size
        self.max_workers = max_workers

    def lookup_existing(self, external_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """
        IN 조회를 chunk_size 단위로 나눠 병렬 실행하고, 모든 조회가 끝난 뒤 결과를 합친다.

        Raises:
            ExistenceLookupError: 한 청크라도 실패한 경우 (일부 결과만으로는 분류를 신뢰할 수 없다)
        """
        chunks = chunked(external_ids, self.chunk_size)
        if not chunks:
            return {}

        results: List[Optional[List[Dict[str, Any]]]] = [None] * len(chunks)
        failures = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunks))) as executor:
            futures = {
                executor.submit(self.store.find_existing_properties, chunk): index
                for index, chunk in enumerate(chunks)
            }
            for future in concurrent.futures.as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    logger.error("기존 매물 조회 청크 %s/%s 실패: %s", index + 1, len(chunks), e)
                    failures.append((index, e))

        if failures:
            index, cause = min(failures, key=lambda item: item[0])
            raise ExistenceLookupError(
                f"기존 매물 조회 실패 ({len(failures)}/{len(chunks)} 청크, 첫 실패 청크 {index + 1}): {cause}"
            ) from cause

        existing: Dict[str, Dict[str, Any]] = {}
        for rows in results:
            for row in rows or []:
                existing[str(row["external_id"])] = {
                    "id": int(row["id"]),
                    "neighborhood_id": row.get("neighborhood_id"),
                }
        return existing

    def classify(self, listings: List[Dict[str, Any]], neighborhood_id: Optional[int] = None) -> Classification:
        """
        원래 순서를 유지한 채 나눈다. id 없는 매물은 건너뛰고, 같은 id가 반복되면 첫 매물만 쓴다.
        neighborhood_id가 주어지면 다른 동에 저장된 기존 매물을 moved_ids로 표시한다.
        """
        classification = Classification()
        unique: List[Dict[str, Any]] = []
        seen: Set[str] = set()
        for listing in listings:
            external_id = external_listing_id(listing)
            if external_id is None or external_id in seen:
                classification.skipped += 1
                continue
            seen.add(external_id)
            unique.append(listing)

        if classification.skipped:
            logger.info("id 누락/중복 매물 %s건 제외", classification.skipped)

        classification.existing = self.lookup_existing([external_listing_id(listing) for listing in unique])

        for listing in unique:
            external_id = external_listing_id(listing)
            current = classification.existing.get(external_id)
            if current is None:
                classification.to_insert.append(listing)
                continue
            classification.to_update.append(listing)
            if neighborhood_id is not None and current["neighborhood_id"] != neighborhood_id:
                classification.moved_ids.add(external_id)

        logger.info(
            "분류 결과: 신규 %s, 업데이트 %s (위치 이전 %s)",
            len(classification.to_insert),
            len(classification.to_update),
            len(classification.moved_ids),
        )
        return classification
