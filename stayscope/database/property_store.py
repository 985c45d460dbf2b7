"""
지역 계층 / 매물 저장소 (MySQL)

파이프라인이 요구하는 저장소 계약:
- unique 제약 위반은 DuplicateKeyError로 구분해서 올린다
- IN 조회 목록 크기는 호출 측이 청크로 제한한다
- 일괄 삽입은 생성된 surrogate id를 돌려준다
- 업데이트는 surrogate id 기준
- 여러 문장에 걸친 트랜잭션은 요구하지 않는다 (호출 1회 = 연결 1개 = commit 1회)
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pymysql.err import IntegrityError

from stayscope.database.db import get_db_connection
from stayscope.database.schema import (
    DUP_ENTRY_ERRNO,
    PROPERTY_INSERT_COLUMNS,
    PROPERTY_UPDATE_COLUMNS,
    REGION_LEVELS,
    SUB_ENTITY_COLUMNS,
    TABLE_DDL,
)
from stayscope.ingestion.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


def _placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)


def _region_level(level: str) -> Dict[str, Optional[str]]:
    table_info = REGION_LEVELS.get(level)
    if table_info is None:
        raise ValueError(f"Unknown region level: {level}")
    return table_info


class MySQLPropertyStore:
    """Rental listing store backed by MySQL."""

    def __init__(self, db_connection_factory=None):
        self._db_connection_factory = db_connection_factory or get_db_connection
        self._tables_ready = False
        self._tables_lock = threading.Lock()

    def _get_db_connection(self):
        return self._db_connection_factory()

    def ensure_tables(self):
        with self._tables_lock:
            if self._tables_ready:
                return
            with self._get_db_connection() as conn:
                cursor = conn.cursor()
                for ddl in TABLE_DDL:
                    cursor.execute(ddl)
            self._tables_ready = True

    # ------------------------------------------------------------------
    # 지역 계층
    # ------------------------------------------------------------------

    def find_region_node(self, level: str, name: str, parent_id: Optional[int] = None) -> Optional[int]:
        table_info = _region_level(level)
        self.ensure_tables()

        query = f"SELECT {table_info['id_column']} AS node_id FROM {table_info['table']} WHERE {table_info['name_column']} = %s"
        params: List[Any] = [name]
        if table_info["parent_column"]:
            query += f" AND {table_info['parent_column']} = %s"
            params.append(parent_id)

        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, tuple(params))
            row = cursor.fetchone()
        return int(row["node_id"]) if row else None

    def insert_region_node(self, level: str, name: str, parent_id: Optional[int] = None) -> int:
        table_info = _region_level(level)
        self.ensure_tables()

        columns = [table_info["name_column"]]
        params: List[Any] = [name]
        if table_info["parent_column"]:
            columns.append(table_info["parent_column"])
            params.append(parent_id)

        query = f"INSERT INTO {table_info['table']} ({', '.join(columns)}) VALUES ({_placeholders(len(columns))})"
        try:
            with self._get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, tuple(params))
                node_id = cursor.lastrowid
        except IntegrityError as exc:
            if exc.args and exc.args[0] == DUP_ENTRY_ERRNO:
                raise DuplicateKeyError(f"{table_info['table']}.{name}: {exc}") from exc
            raise
        return int(node_id)

    def touch_neighborhood(self, neighborhood_id: int, property_count: int, synced_at: datetime) -> None:
        self.ensure_tables()
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE neighborhoods
                SET last_synced_at = %s, property_count = %s
                WHERE neighborhood_id = %s
                """,
                (synced_at, property_count, neighborhood_id),
            )

    def list_cities(self) -> List[Dict[str, Any]]:
        self.ensure_tables()
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT city_id, city_name FROM cities ORDER BY city_name")
            return list(cursor.fetchall() or [])

    def list_districts(self, city_name: str) -> List[Dict[str, Any]]:
        self.ensure_tables()
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT d.district_id, d.district_name
                FROM districts d
                JOIN cities c ON c.city_id = d.city_id
                WHERE c.city_name = %s
                ORDER BY d.district_name
                """,
                (city_name,),
            )
            return list(cursor.fetchall() or [])

    def list_neighborhoods(self, city_name: str, district_name: str) -> List[Dict[str, Any]]:
        self.ensure_tables()
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT n.neighborhood_id, n.neighborhood_name, n.property_count, n.last_synced_at
                FROM neighborhoods n
                JOIN districts d ON d.district_id = n.district_id
                JOIN cities c ON c.city_id = d.city_id
                WHERE c.city_name = %s
                  AND d.district_name = %s
                ORDER BY n.neighborhood_name
                """,
                (city_name, district_name),
            )
            return list(cursor.fetchall() or [])

    # ------------------------------------------------------------------
    # 매물
    # ------------------------------------------------------------------

    def find_existing_properties(self, external_ids: Sequence[str]) -> List[Dict[str, Any]]:
        if not external_ids:
            return []
        self.ensure_tables()
        query = f"""
            SELECT id, external_id, neighborhood_id
            FROM properties
            WHERE external_id IN ({_placeholders(len(external_ids))})
        """
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, tuple(external_ids))
            return list(cursor.fetchall() or [])

    def insert_properties(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """일괄 삽입 후 같은 연결에서 생성된 id를 external_id로 다시 읽어 돌려준다."""
        if not rows:
            return []
        self.ensure_tables()

        columns = list(PROPERTY_INSERT_COLUMNS)
        query = f"""
            INSERT INTO properties ({", ".join([f"`{c}`" for c in columns])})
            VALUES ({_placeholders(len(columns))})
        """
        payload = [tuple(row.get(column) for column in columns) for row in rows]
        external_ids = [row["external_id"] for row in rows]

        try:
            with self._get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.executemany(query, payload)
                cursor.execute(
                    f"""
                    SELECT id, external_id
                    FROM properties
                    WHERE external_id IN ({_placeholders(len(external_ids))})
                    """,
                    tuple(external_ids),
                )
                inserted = list(cursor.fetchall() or [])
        except IntegrityError as exc:
            if exc.args and exc.args[0] == DUP_ENTRY_ERRNO:
                raise DuplicateKeyError(f"properties: {exc}") from exc
            raise
        return inserted

    def update_property(self, surrogate_id: int, fields: Dict[str, Any]) -> int:
        columns = [column for column in PROPERTY_UPDATE_COLUMNS if column in fields]
        if not columns:
            return 0
        self.ensure_tables()

        assignments = ", ".join([f"`{column}` = %s" for column in columns])
        params = [fields[column] for column in columns]
        params.append(surrogate_id)
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"UPDATE properties SET {assignments} WHERE id = %s", tuple(params))
            return int(cursor.rowcount or 0)

    def find_property(self, surrogate_id: int) -> Optional[Dict[str, Any]]:
        self.ensure_tables()
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, external_id, neighborhood_id, name FROM properties WHERE id = %s",
                (surrogate_id,),
            )
            return cursor.fetchone()

    # ------------------------------------------------------------------
    # 하위 테이블
    # ------------------------------------------------------------------

    def insert_sub_entities(self, table: str, rows: Iterable[Dict[str, Any]]) -> int:
        columns = SUB_ENTITY_COLUMNS.get(table)
        if columns is None:
            raise ValueError(f"Unknown sub-entity table: {table}")
        payload = [tuple(row.get(column) for column in columns) for row in rows]
        if not payload:
            return 0
        self.ensure_tables()

        query = f"""
            INSERT INTO {table} ({", ".join([f"`{c}`" for c in columns])})
            VALUES ({_placeholders(len(columns))})
        """
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.executemany(query, payload)
            return int(cursor.rowcount or 0)

    def upsert_occupancy(self, property_id: int, rates: Dict[str, float], updated_at: datetime) -> int:
        self.ensure_tables()
        with self._get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO property_occupancy (
                    property_id, occupancy_rate, occupancy_2rate, occupancy_3rate, updated_at
                ) VALUES (%s, %s, %s, %s, %s)
                ON DUPLICATE KEY UPDATE
                    occupancy_rate = VALUES(occupancy_rate),
                    occupancy_2rate = VALUES(occupancy_2rate),
                    occupancy_3rate = VALUES(occupancy_3rate),
                    updated_at = VALUES(updated_at)
                """,
                (
                    property_id,
                    rates["occupancy_rate"],
                    rates["occupancy_2rate"],
                    rates["occupancy_3rate"],
                    updated_at,
                ),
            )
            return int(cursor.rowcount or 0)


_property_store_singleton: Optional[MySQLPropertyStore] = None


def get_property_store() -> MySQLPropertyStore:
    global _property_store_singleton
    if _property_store_singleton is None:
        _property_store_singleton = MySQLPropertyStore()
    return _property_store_singleton
