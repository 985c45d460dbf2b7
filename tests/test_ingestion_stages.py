import time
import unittest
from datetime import datetime

from property_store_stub import InMemoryPropertyStore
from stayscope.ingestion.errors import ExistenceLookupError
from stayscope.ingestion.existence_classifier import ExistenceClassifier
from stayscope.ingestion.property_reconciler import TIMEOUT_REASON, PropertyReconciler
from stayscope.ingestion.sub_entity_fanout import SubEntityFanout


NOW = datetime(2026, 3, 1, 12, 0, 0)


def _listings(ids, **extra):
    return [{"id": str(i), "name": f"매물 {i}", "address": "강원도 춘천시 퇴계동", **extra} for i in ids]


def _seed(store, ids, neighborhood_id):
    store.insert_properties(
        [{"external_id": str(i), "neighborhood_id": neighborhood_id, "name": "기존"} for i in ids]
    )
    store.calls["insert_properties"] = 0
    store.insert_chunk_sizes.clear()


class TestExistenceClassifier(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPropertyStore()

    def test_partitions_preserving_order(self):
        _seed(self.store, [2, 4], neighborhood_id=10)
        classifier = ExistenceClassifier(self.store, chunk_size=2)

        result = classifier.classify(_listings([1, 2, 3, 4, 5]), neighborhood_id=10)

        self.assertEqual([item["id"] for item in result.to_insert], ["1", "3", "5"])
        self.assertEqual([item["id"] for item in result.to_update], ["2", "4"])
        self.assertEqual(sorted(self.store.lookup_chunk_sizes), [1, 2, 2])
        self.assertEqual(result.moved_ids, set())

    def test_existing_in_other_neighborhood_is_moved_update(self):
        _seed(self.store, [1], neighborhood_id=99)
        result = ExistenceClassifier(self.store).classify(_listings([1, 2]), neighborhood_id=10)

        self.assertEqual([item["id"] for item in result.to_update], ["1"])
        self.assertEqual(result.moved_ids, {"1"})

    def test_missing_and_duplicate_ids_are_skipped(self):
        listings = _listings([1, 1, 2]) + [{"name": "id 없음"}]
        result = ExistenceClassifier(self.store).classify(listings)

        self.assertEqual([item["id"] for item in result.to_insert], ["1", "2"])
        self.assertEqual(result.skipped, 2)

    def test_lookup_failure_raises(self):
        self.store.fail_lookup = True
        with self.assertRaises(ExistenceLookupError):
            ExistenceClassifier(self.store).classify(_listings([1]))


class TestPropertyReconciler(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPropertyStore()
        self.classifier = ExistenceClassifier(self.store, chunk_size=2)
        self.reconciler = PropertyReconciler(self.store, chunk_size=2, max_workers=4)

    def test_inserts_in_chunks_and_maps_ids(self):
        classification = self.classifier.classify(_listings([1, 2, 3]), neighborhood_id=10)

        result = self.reconciler.reconcile(classification, neighborhood_id=10, now=NOW)

        self.assertEqual(self.store.insert_chunk_sizes, [2, 1])
        self.assertEqual(set(result.inserted_ids), {"1", "2", "3"})
        self.assertEqual(result.inserted, 3)
        self.assertEqual(result.failed, 0)
        for external_id, property_id in result.inserted_ids.items():
            self.assertEqual(self.store.properties[property_id]["external_id"], external_id)

    def test_failed_chunk_does_not_stop_siblings(self):
        self.store.fail_insert_calls.add(2)
        classification = self.classifier.classify(_listings([1, 2, 3, 4, 5]), neighborhood_id=10)

        result = self.reconciler.reconcile(classification, neighborhood_id=10, now=NOW)

        self.assertEqual(set(result.inserted_ids), {"1", "2", "5"})
        self.assertEqual(result.failed, 2)
        self.assertEqual(len(result.failed_chunks), 1)
        self.assertEqual(result.failed_chunks[0].chunk_index, 2)
        self.assertIn("insert", result.failed_chunks[0].error)

    def test_updates_refresh_fields_and_move_neighborhood(self):
        _seed(self.store, [1], neighborhood_id=10)
        _seed(self.store, [2], neighborhood_id=99)
        classification = self.classifier.classify(_listings([1, 2]), neighborhood_id=10)

        result = self.reconciler.reconcile(classification, neighborhood_id=10, now=NOW)

        self.assertEqual(result.updated, 2)
        self.assertEqual(result.moved, 1)
        rows = {row["external_id"]: row for row in self.store.properties.values()}
        self.assertEqual(rows["1"]["name"], "매물 1")
        self.assertEqual(rows["1"]["updated_at"], NOW)
        self.assertEqual(rows["2"]["neighborhood_id"], 10)
        self.assertEqual(self.store.insert_chunk_sizes, [])

    def test_partial_update_failure_reports_chunk(self):
        _seed(self.store, [1, 2], neighborhood_id=10)
        self.store.fail_update_external_ids.add("2")
        classification = self.classifier.classify(_listings([1, 2]), neighborhood_id=10)

        result = self.reconciler.reconcile(classification, neighborhood_id=10, now=NOW)

        self.assertEqual(result.updated, 1)
        self.assertEqual(result.failed, 1)
        self.assertEqual(result.failed_chunks[0].operation, "update")

    def test_expired_deadline_skips_unstarted_chunks(self):
        classification = self.classifier.classify(_listings([1, 2, 3]), neighborhood_id=10)

        result = self.reconciler.reconcile(classification, neighborhood_id=10, now=NOW, deadline=time.monotonic() - 1)

        self.assertTrue(result.timed_out)
        self.assertEqual(result.inserted, 0)
        self.assertEqual(result.failed, 3)
        self.assertEqual({report.error for report in result.chunk_reports}, {TIMEOUT_REASON})
        self.assertEqual(self.store.calls["insert_properties"], 0)


class TestSubEntityFanout(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPropertyStore()
        self.fanout = SubEntityFanout(self.store, chunk_size=2)

    def test_writes_each_table_and_skips_empty_ones(self):
        listings = [
            {"id": "1", "images": ["https://img/1.jpg"]},
            {"id": "2"},
            {"id": "3"},
        ]
        outcomes = self.fanout.run(listings, {"1": 101, "2": 102, "3": 103})
        by_table = {outcome.table: outcome for outcome in outcomes}

        self.assertEqual(by_table["property_details"].status, "ok")
        self.assertEqual(by_table["property_details"].rows, 3)
        self.assertEqual(self.store.calls["insert_sub_entities:property_details"], 2)
        self.assertEqual(by_table["property_images"].rows, 1)
        self.assertEqual(by_table["property_reviews"].status, "skipped")
        self.assertEqual(by_table["property_review_summary"].status, "skipped")

    def test_one_table_failure_does_not_cancel_others(self):
        self.store.fail_tables.add("property_pricing")

        outcomes = self.fanout.run([{"id": "1"}], {"1": 101})
        by_table = {outcome.table: outcome for outcome in outcomes}

        self.assertEqual(by_table["property_pricing"].status, "failed")
        self.assertIn("property_pricing", by_table["property_pricing"].error)
        self.assertEqual(by_table["property_details"].status, "ok")
        self.assertEqual(by_table["property_occupancy"].status, "ok")
        self.assertEqual(self.store.sub_entity_count("property_details", 101), 1)

    def test_only_inserted_listings_fan_out(self):
        outcomes = self.fanout.run([{"id": "1"}, {"id": "2"}], {"2": 202})

        self.assertEqual(outcomes[0].rows, 1)
        self.assertEqual(self.store.sub_entity_count("property_details", 202), 1)


if __name__ == "__main__":
    unittest.main()
