"""
신규 매물의 하위 테이블(상세/가격/예약률/대표 이미지/리뷰/리뷰 요약) 일괄 삽입

6개 테이블을 독립 작업으로 동시에 실행하고, 한 테이블이 실패해도 나머지는 취소하지 않는다.
기존 매물(업데이트 대상)의 하위 데이터는 건드리지 않는다.
"""
from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from stayscope.database.schema import SUB_ENTITY_TABLES
from stayscope.ingestion.errors import SubEntityWriteError
from stayscope.ingestion.listing_normalizer import build_sub_entity_rows, external_listing_id
from stayscope.utils.batching import chunked

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass
class TableOutcome:
    table: str
    status: str
    rows: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "status": self.status,
            "rows": self.rows,
            "error": self.error,
        }


class SubEntityFanout:
    def __init__(self, store, chunk_size: int = 1000, max_workers: int = 6):
        self.store = store
        self.chunk_size = chunk_size
        self.max_workers = max_workers

    def build_rows(
        self,
        new_listings: List[Dict[str, Any]],
        inserted_ids: Dict[str, int],
    ) -> Dict[str, List[Dict[str, Any]]]:
        rows: Dict[str, List[Dict[str, Any]]] = {table: [] for table in SUB_ENTITY_TABLES}
        for listing in new_listings:
            property_id = inserted_ids.get(external_listing_id(listing))
            if property_id is None:
                continue
            for table, table_rows in build_sub_entity_rows(listing, property_id).items():
                rows[table].extend(table_rows)
        return rows

    def _write_table(self, table: str, rows: List[Dict[str, Any]]) -> int:
        written = 0
        for chunk in chunked(rows, self.chunk_size):
            self.store.insert_sub_entities(table, chunk)
            written += len(chunk)
        return written

    def run(self, new_listings: List[Dict[str, Any]], inserted_ids: Dict[str, int]) -> List[TableOutcome]:
        """테이블 순서(SUB_ENTITY_TABLES)대로 결과를 돌려준다. 쓸 행이 없는 테이블은 skipped"""
        rows_by_table = self.build_rows(new_listings, inserted_ids)
        outcomes: Dict[str, TableOutcome] = {}

        pending = {table: rows for table, rows in rows_by_table.items() if rows}
        for table in SUB_ENTITY_TABLES:
            if table not in pending:
                outcomes[table] = TableOutcome(table=table, status=STATUS_SKIPPED)

        if pending:
            with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(pending))) as executor:
                futures = {
                    executor.submit(self._write_table, table, rows): table
                    for table, rows in pending.items()
                }
                for future in concurrent.futures.as_completed(futures):
                    table = futures[future]
                    try:
                        written = future.result()
                        outcomes[table] = TableOutcome(table=table, status=STATUS_OK, rows=written)
                    except Exception as e:
                        error = SubEntityWriteError(table, e)
                        logger.error(str(error))
                        outcomes[table] = TableOutcome(
                            table=table,
                            status=STATUS_FAILED,
                            rows=len(pending[table]),
                            error=str(error),
                        )

        return [outcomes[table] for table in SUB_ENTITY_TABLES]
