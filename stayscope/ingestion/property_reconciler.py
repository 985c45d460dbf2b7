"""
core 매물(properties) 청크 단위 insert / update

청크마다 개별 커밋되므로 전체는 원자적이지 않다. 실패한 청크는 보고만 하고 다음 청크를 계속 처리한다.
"""
from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from stayscope.ingestion.errors import ChunkWriteError
from stayscope.ingestion.existence_classifier import Classification
from stayscope.ingestion.listing_normalizer import (
    build_property_row,
    build_update_fields,
    external_listing_id,
)
from stayscope.utils.batching import chunked, deadline_passed

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "timeout"


@dataclass
class ChunkReport:
    operation: str
    chunk_index: int
    size: int
    succeeded: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> int:
        return self.size - self.succeeded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "chunk_index": self.chunk_index,
            "size": self.size,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "error": self.error,
        }


@dataclass
class ReconcileResult:
    # 신규 삽입된 매물만: external_id -> surrogate id
    inserted_ids: Dict[str, int] = field(default_factory=dict)
    updated: int = 0
    moved: int = 0
    chunk_reports: List[ChunkReport] = field(default_factory=list)
    timed_out: bool = False

    @property
    def inserted(self) -> int:
        return len(self.inserted_ids)

    @property
    def failed(self) -> int:
        return sum(report.failed for report in self.chunk_reports)

    @property
    def failed_chunks(self) -> List[ChunkReport]:
        return [report for report in self.chunk_reports if report.error]


class PropertyReconciler:
    def __init__(self, store, chunk_size: int = 1000, max_workers: int = 16):
        self.store = store
        self.chunk_size = chunk_size
        self.max_workers = max_workers

    def reconcile(
        self,
        classification: Classification,
        neighborhood_id: int,
        now: Optional[datetime] = None,
        deadline: Optional[float] = None,
    ) -> ReconcileResult:
        now = now or datetime.now()
        result = ReconcileResult()
        self._insert_new(classification.to_insert, neighborhood_id, now, deadline, result)
        self._update_existing(classification, neighborhood_id, now, deadline, result)

        if result.failed_chunks:
            logger.warning(
                "core 매물 청크 %s개 실패 (실패 매물 %s건)", len(result.failed_chunks), result.failed
            )
        return result

    def _insert_new(
        self,
        listings: List[Dict[str, Any]],
        neighborhood_id: int,
        now: datetime,
        deadline: Optional[float],
        result: ReconcileResult,
    ) -> None:
        chunks = chunked(listings, self.chunk_size)
        for index, chunk in enumerate(chunks, start=1):
            report = ChunkReport(operation="insert", chunk_index=index, size=len(chunk))
            result.chunk_reports.append(report)

            if deadline_passed(deadline):
                result.timed_out = True
                report.error = TIMEOUT_REASON
                continue

            rows = [build_property_row(listing, neighborhood_id, now) for listing in chunk]
            try:
                inserted = self.store.insert_properties(rows)
            except Exception as e:
                error = ChunkWriteError("insert", index, len(chunk), e)
                logger.error(str(error))
                report.error = str(error)
                continue

            expected = {row["external_id"] for row in rows}
            for row in inserted:
                external_id = str(row["external_id"])
                if external_id in expected:
                    result.inserted_ids[external_id] = int(row["id"])
            report.succeeded = len(expected & set(result.inserted_ids))
            if report.failed:
                report.error = f"생성 id를 돌려받지 못한 매물 {report.failed}건"
            logger.info("insert 청크 %s/%s 완료: %s건", index, len(chunks), report.succeeded)

    def _update_existing(
        self,
        classification: Classification,
        neighborhood_id: int,
        now: datetime,
        deadline: Optional[float],
        result: ReconcileResult,
    ) -> None:
        chunks = chunked(classification.to_update, self.chunk_size)
        for index, chunk in enumerate(chunks, start=1):
            report = ChunkReport(operation="update", chunk_index=index, size=len(chunk))
            result.chunk_reports.append(report)

            if deadline_passed(deadline):
                result.timed_out = True
                report.error = TIMEOUT_REASON
                continue

            failures = []
            with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunk))) as executor:
                futures = {}
                for listing in chunk:
                    external_id = external_listing_id(listing)
                    moved = external_id in classification.moved_ids
                    fields = build_update_fields(listing, now, neighborhood_id if moved else None)
                    surrogate_id = classification.existing[external_id]["id"]
                    futures[executor.submit(self.store.update_property, surrogate_id, fields)] = (external_id, moved)

                for future in concurrent.futures.as_completed(futures):
                    external_id, moved = futures[future]
                    try:
                        future.result()
                    except Exception as e:
                        failures.append((external_id, e))
                        continue
                    report.succeeded += 1
                    result.updated += 1
                    if moved:
                        result.moved += 1

            if failures:
                failed_id, cause = failures[0]
                error = ChunkWriteError("update", index, len(chunk), cause)
                logger.error("%s (external_id=%s 외 %s건)", error, failed_id, len(failures) - 1)
                report.error = str(error)
            else:
                logger.info("update 청크 %s/%s 완료: %s건", index, len(chunks), report.succeeded)
