import time
import unittest
from unittest.mock import patch

from property_store_stub import InMemoryPropertyStore
from stayscope.config import IngestionConfig
from stayscope.ingestion.errors import HierarchyResolutionError
from stayscope.ingestion.pipeline import OTHER_PROVINCE, ListingIngestionPipeline
from stayscope.region.address_validator import INCOMPLETE_ADDRESS, PARSE_FAILED


def _listing(external_id, address="강원도 춘천시 퇴계동 123", **extra):
    return {
        "id": external_id,
        "name": f"매물 {external_id}",
        "address": address,
        "building_type": "오피스텔",
        "weekly_price": 300000,
        "occupancy_rate": 50,
        "images": [f"https://img/{external_id}.jpg"],
        **extra,
    }


class _SlowInsertStore(InMemoryPropertyStore):
    def __init__(self, delay):
        super().__init__()
        self.delay = delay

    def insert_properties(self, rows):
        inserted = super().insert_properties(rows)
        time.sleep(self.delay)
        return inserted


class TestNeighborhoodIngestion(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPropertyStore()
        self.pipeline = ListingIngestionPipeline(store=self.store, config=IngestionConfig(chunk_size=1000))

    def _ingest(self, listings, pipeline=None, **kwargs):
        return (pipeline or self.pipeline).ingest_neighborhood("강원도", "춘천시", "퇴계동", listings, **kwargs)

    def test_new_neighborhood_with_1500_listings_uses_two_insert_chunks(self):
        listings = [_listing(str(i)) for i in range(1, 1501)]

        result = self._ingest(listings)

        self.assertTrue(result["success"])
        self.assertEqual(self.store.insert_chunk_sizes, [1000, 500])
        self.assertEqual(result["new_properties"], 1500)
        self.assertEqual(result["updated_properties"], 0)
        self.assertEqual(result["total_properties"], 1500)
        self.assertEqual(self.store.neighborhood_sync[result["neighborhood_id"]]["property_count"], 1500)
        self.assertIn(("강원특별자치도", None), self.store.region_nodes["city"])
        self.assertEqual(len(self.store.sub_entities["property_details"]), 1500)
        self.assertEqual(len(self.store.sub_entities["property_images"]), 1500)

    def test_rerun_is_idempotent_and_does_not_duplicate_sub_entities(self):
        listings = [_listing(str(i)) for i in range(1, 31)]
        first = self._ingest(listings)
        sub_entity_rows = {table: len(rows) for table, rows in self.store.sub_entities.items()}

        second = self._ingest(listings)

        self.assertEqual(first["new_properties"], 30)
        self.assertEqual(second["new_properties"], 0)
        self.assertEqual(second["updated_properties"], 30)
        self.assertEqual(second["moved_properties"], 0)
        self.assertEqual(second["neighborhood_id"], first["neighborhood_id"])
        self.assertEqual(len(self.store.properties), 30)
        self.assertEqual({table: len(rows) for table, rows in self.store.sub_entities.items()}, sub_entity_rows)
        self.assertTrue(all(outcome["status"] == "skipped" for outcome in second["sub_entities"]))

    def test_failed_middle_chunk_reports_partial_success(self):
        pipeline = ListingIngestionPipeline(store=self.store, config=IngestionConfig(chunk_size=2))
        self.store.fail_insert_calls.add(2)

        result = self._ingest([_listing(str(i)) for i in range(1, 7)], pipeline=pipeline)

        self.assertFalse(result["success"])
        self.assertEqual(result["new_properties"], 4)
        self.assertEqual(result["failed_properties"], 2)
        self.assertEqual(len(result["chunk_errors"]), 1)
        self.assertEqual(result["chunk_errors"][0]["chunk_index"], 2)
        self.assertIn("error", result)
        # 성공한 청크의 매물만 하위 데이터가 생긴다
        self.assertEqual(len(self.store.sub_entities["property_details"]), 4)

    def test_sub_entity_failure_keeps_core_rows(self):
        self.store.fail_tables.add("property_reviews")
        listings = [_listing("1", review_info={"review_count": 1, "review_details": [{"user_name": "kim"}]})]

        result = self._ingest(listings)

        self.assertFalse(result["success"])
        self.assertEqual(result["new_properties"], 1)
        self.assertEqual(len(self.store.properties), 1)
        statuses = {outcome["table"]: outcome["status"] for outcome in result["sub_entities"]}
        self.assertEqual(statuses["property_reviews"], "failed")
        self.assertEqual(statuses["property_review_summary"], "ok")
        self.assertIn("property_reviews", result["error"])

    def test_listing_moved_from_other_neighborhood(self):
        self.pipeline.ingest_neighborhood("강원도", "춘천시", "석사동", [_listing("7")])

        result = self._ingest([_listing("7"), _listing("8")])

        self.assertEqual(result["new_properties"], 1)
        self.assertEqual(result["updated_properties"], 1)
        self.assertEqual(result["moved_properties"], 1)
        moved = next(row for row in self.store.properties.values() if row["external_id"] == "7")
        self.assertEqual(moved["neighborhood_id"], result["neighborhood_id"])

    def test_listings_without_id_are_skipped(self):
        result = self._ingest([_listing("1"), {"name": "no id"}, _listing("1")])

        self.assertTrue(result["success"])
        self.assertEqual(result["new_properties"], 1)
        self.assertEqual(result["skipped_listings"], 2)

    def test_lookup_failure_writes_nothing(self):
        self.store.fail_lookup = True

        result = self._ingest([_listing("1")])

        self.assertFalse(result["success"])
        self.assertEqual(result["failed_properties"], 1)
        self.assertEqual(self.store.properties, {})

    def test_district_conflict_fails_run_without_raising(self):
        self.store.ghost_conflict_levels.add("district")

        result = self._ingest([_listing("1")])

        self.assertFalse(result["success"])
        self.assertIsNone(result["neighborhood_id"])
        self.assertEqual(result["failed_properties"], 1)

    def test_city_failure_is_fatal(self):
        self.store.fail_region_levels.add("city")

        with self.assertRaises(HierarchyResolutionError):
            self._ingest([_listing("1")])

    def test_timeout_before_first_chunk(self):
        with patch("stayscope.ingestion.pipeline.deadline_after", return_value=time.monotonic() - 1):
            result = self._ingest([_listing("1"), _listing("2")], timeout_seconds=0.01)

        self.assertTrue(result["timed_out"])
        self.assertFalse(result["success"])
        self.assertEqual(result["new_properties"], 0)
        self.assertEqual(result["failed_properties"], 2)
        self.assertEqual(result["chunk_errors"][0]["error"], "timeout")
        self.assertEqual(self.store.properties, {})

    def test_deadline_passing_after_insert_still_fans_out_new_rows(self):
        store = _SlowInsertStore(delay=0.1)
        pipeline = ListingIngestionPipeline(store=store, config=IngestionConfig(chunk_size=1000))

        with patch("stayscope.ingestion.pipeline.deadline_after", return_value=time.monotonic() + 0.05):
            first = self._ingest([_listing("1")], pipeline=pipeline, timeout_seconds=0.05)
        second = self._ingest([_listing("1")], pipeline=pipeline)

        self.assertEqual(first["new_properties"], 1)
        self.assertEqual(second["new_properties"], 0)
        self.assertEqual(second["updated_properties"], 1)
        for table in ("property_details", "property_pricing", "property_occupancy", "property_images"):
            self.assertEqual(len(store.sub_entities[table]), 1, table)
        self.assertTrue(all(outcome["status"] == "ok" for outcome in first["sub_entities"] if outcome["rows"]))


class TestRegionalIngestion(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPropertyStore()
        self.pipeline = ListingIngestionPipeline(store=self.store, config=IngestionConfig(chunk_size=1000))

    def test_groups_and_reports_invalid_listings(self):
        listings = [
            _listing("1", "강원도 춘천시 퇴계동 1"),
            _listing("2", "강원특별자치도 원주시 단계동 2"),
            _listing("3", "강원도 춘천시 퇴계동 3"),
            _listing("4", "Unknown address"),
            _listing("5", "강원도"),
            _listing("6", "경기도 수원시 팔달구 인계동 6"),
        ]

        result = self.pipeline.ingest_regional_batch("강원", listings)

        self.assertTrue(result["success"])
        self.assertEqual(result["province"], "강원특별자치도")
        self.assertEqual(result["total_received"], 6)
        self.assertEqual(result["new_properties"], 3)
        self.assertEqual(result["total_processed"], 3)
        self.assertEqual(result["invalid_listings"], 3)
        self.assertEqual(
            {item["id"]: item["error"] for item in result["invalid"]},
            {"4": PARSE_FAILED, "5": INCOMPLETE_ADDRESS, "6": OTHER_PROVINCE},
        )
        self.assertEqual([item["region"] for item in result["processing_results"]], ["춘천시 퇴계동", "원주시 단계동"])
        self.assertEqual(result["processing_results"][0]["new_count"], 2)
        self.assertEqual(len(self.store.region_nodes["city"]), 1)

    def test_failed_region_does_not_stop_others(self):
        self.store.fail_insert_calls.add(1)
        listings = [
            _listing("1", "강원도 춘천시 퇴계동 1"),
            _listing("2", "강원도 원주시 단계동 2"),
        ]

        result = self.pipeline.ingest_regional_batch("강원도", listings)

        self.assertFalse(result["success"])
        self.assertEqual(result["error_regions"], 1)
        self.assertEqual(result["new_properties"], 1)
        self.assertEqual(result["failed_properties"], 1)
        self.assertFalse(result["processing_results"][0]["success"])
        self.assertTrue(result["processing_results"][1]["success"])

    def test_moved_listing_counts_as_update(self):
        self.pipeline.ingest_regional_batch("강원도", [_listing("1", "강원도 춘천시 퇴계동 1")])

        result = self.pipeline.ingest_regional_batch("강원도", [_listing("1", "강원도 춘천시 석사동 1")])

        self.assertEqual(result["new_properties"], 0)
        self.assertEqual(result["updated_properties"], 1)
        self.assertEqual(result["moved_properties"], 1)
        self.assertEqual(result["processing_results"][0]["move_count"], 1)

    def test_city_failure_is_fatal(self):
        self.store.fail_region_levels.add("city")

        with self.assertRaises(HierarchyResolutionError):
            self.pipeline.ingest_regional_batch("강원도", [_listing("1")])

    def test_timeout_marks_remaining_regions_failed(self):
        with patch("stayscope.ingestion.pipeline.deadline_after", return_value=time.monotonic() - 1):
            result = self.pipeline.ingest_regional_batch("강원도", [_listing("1")], timeout_seconds=0.01)

        self.assertTrue(result["timed_out"])
        self.assertEqual(result["processing_results"][0]["error"], "timeout")
        self.assertEqual(result["failed_properties"], 1)
        self.assertEqual(self.store.properties, {})


class TestRegionalPreview(unittest.TestCase):
    def test_preview_counts_without_writing(self):
        store = InMemoryPropertyStore()
        pipeline = ListingIngestionPipeline(store=store, config=IngestionConfig())
        pipeline.ingest_neighborhood("강원도", "춘천시", "퇴계동", [_listing("1")])
        nodes_before = {level: dict(nodes) for level, nodes in store.region_nodes.items()}
        inserts_before = store.calls["insert_properties"]

        result = pipeline.preview_regional_batch(
            "강원도",
            [
                _listing("1", "강원도 춘천시 퇴계동 1"),
                _listing("2", "강원도 춘천시 퇴계동 2"),
                _listing("3", "강원도 원주시 단계동 3"),
                _listing("4", "not an address"),
            ],
        )

        self.assertTrue(result["success"])
        self.assertEqual(result["valid_listings"], 3)
        self.assertEqual(result["invalid_listings"], 1)
        counts = {group["neighborhood"]: (group["new_count"], group["update_count"]) for group in result["groups"]}
        self.assertEqual(counts, {"퇴계동": (1, 1), "단계동": (1, 0)})
        self.assertEqual(store.region_nodes, nodes_before)
        self.assertEqual(store.calls["insert_properties"], inserts_before)


if __name__ == "__main__":
    unittest.main()
