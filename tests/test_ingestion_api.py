import unittest
from datetime import datetime
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from property_store_stub import InMemoryPropertyStore
from stayscope.api.ingestion_api import router as rental_router
from stayscope.config import IngestionConfig
from stayscope.ingestion.pipeline import ListingIngestionPipeline


def _listing(external_id, address="강원도 춘천시 퇴계동 123"):
    return {"id": external_id, "name": f"매물 {external_id}", "address": address}


class TestRentalIngestionApi(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryPropertyStore()
        self.pipeline = ListingIngestionPipeline(store=self.store, config=IngestionConfig())

        self._patchers = [
            patch("stayscope.api.ingestion_api.get_ingestion_pipeline", return_value=self.pipeline),
            patch("stayscope.api.ingestion_api.get_property_store", return_value=self.store),
            patch("stayscope.properties.occupancy_service.get_property_store", return_value=self.store),
            patch("stayscope.api.ingestion_api.log_info"),
            patch("stayscope.api.ingestion_api.log_error"),
        ]
        mocks = [patcher.start() for patcher in self._patchers]
        self.mock_log_info, self.mock_log_error = mocks[3], mocks[4]

        app = FastAPI()
        app.include_router(rental_router, prefix="/api")
        self.client = TestClient(app)

    def tearDown(self):
        for patcher in reversed(self._patchers):
            patcher.stop()

    def test_neighborhood_ingestion_returns_summary(self):
        payload = {
            "province": "강원도",
            "district": "춘천시",
            "neighborhood": "퇴계동",
            "listings": [_listing("1"), _listing("2")],
        }

        response = self.client.post("/api/rental/ingestion/neighborhood", json=payload)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["new_properties"], 2)
        self.assertEqual(body["updated_properties"], 0)
        self.assertIsNotNone(body["neighborhood_id"])
        self.assertIn("processing_time_seconds", body)
        self.assertTrue(self.mock_log_info.called)

        again = self.client.post("/api/rental/ingestion/neighborhood", json=payload).json()
        self.assertEqual(again["new_properties"], 0)
        self.assertEqual(again["updated_properties"], 2)

    def test_missing_region_is_bad_request(self):
        response = self.client.post(
            "/api/rental/ingestion/neighborhood",
            json={"province": "강원도", "district": "", "neighborhood": "퇴계동", "listings": []},
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/rental/ingestion/neighborhood",
            json={"province": "강원도", "district": "춘천시", "neighborhood": "퇴계동"},
        )
        self.assertEqual(response.status_code, 400)

    def test_wrong_listing_type_is_validation_error(self):
        response = self.client.post(
            "/api/rental/ingestion/neighborhood",
            json={"province": "강원도", "district": "춘천시", "neighborhood": "퇴계동", "listings": "x"},
        )
        self.assertEqual(response.status_code, 422)

    def test_fatal_hierarchy_failure_is_server_error(self):
        self.store.fail_region_levels.add("city")

        response = self.client.post(
            "/api/rental/ingestion/neighborhood",
            json={"province": "강원도", "district": "춘천시", "neighborhood": "퇴계동", "listings": [_listing("1")]},
        )

        self.assertEqual(response.status_code, 500)
        self.assertTrue(self.mock_log_error.called)

    def test_regional_ingestion_and_preview(self):
        listings = [
            _listing("1", "강원도 춘천시 퇴계동 1"),
            _listing("2", "강원도 원주시 단계동 2"),
            _listing("3", "주소 없음"),
        ]

        preview = self.client.post("/api/rental/ingestion/preview", json={"province": "강원", "listings": listings})
        self.assertEqual(preview.status_code, 200)
        self.assertEqual(len(preview.json()["groups"]), 2)
        self.assertEqual(self.store.properties, {})

        response = self.client.post("/api/rental/ingestion/regional", json={"province": "강원", "listings": listings})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["new_properties"], 2)
        self.assertEqual(body["invalid_listings"], 1)
        self.assertEqual(body["error_regions"], 0)

    def test_resolve_address(self):
        response = self.client.get("/api/rental/address/resolve", params={"address": "강원도 춘천시 퇴계동 123"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "province": "강원특별자치도",
                "district": "춘천시",
                "neighborhood": "퇴계동",
                "full_address": "강원도 춘천시 퇴계동 123",
            },
        )

        missing = self.client.get("/api/rental/address/resolve", params={"address": "somewhere"})
        self.assertEqual(missing.status_code, 404)

    def test_region_browsing(self):
        self.pipeline.ingest_neighborhood("강원도", "춘천시", "퇴계동", [_listing("1")])

        provinces = self.client.get("/api/rental/regions").json()
        self.assertEqual([row["city_name"] for row in provinces["rows"]], ["강원특별자치도"])

        districts = self.client.get("/api/rental/regions", params={"level": "districts", "province": "강원도"}).json()
        self.assertEqual(districts["province"], "강원특별자치도")
        self.assertEqual([row["district_name"] for row in districts["rows"]], ["춘천시"])

        neighborhoods = self.client.get(
            "/api/rental/regions",
            params={"level": "neighborhoods", "province": "강원", "district": "춘천시"},
        ).json()
        self.assertEqual(neighborhoods["rows"][0]["neighborhood_name"], "퇴계동")
        self.assertEqual(neighborhoods["rows"][0]["property_count"], 1)

        bad = self.client.get("/api/rental/regions", params={"level": "neighborhoods", "province": "강원"})
        self.assertEqual(bad.status_code, 400)

    def test_update_occupancy(self):
        self.pipeline.ingest_neighborhood("강원도", "춘천시", "퇴계동", [_listing("1")])
        property_id = next(iter(self.store.properties))
        rates = {"occupancy_rate": 80, "occupancy_2rate": 60.5, "occupancy_3rate": 40}

        response = self.client.put(f"/api/rental/properties/{property_id}/occupancy", json=rates)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.store.occupancy[property_id]["occupancy_2rate"], 60.5)
        self.assertIsInstance(self.store.occupancy[property_id]["updated_at"], datetime)

        missing = self.client.put("/api/rental/properties/9999/occupancy", json=rates)
        self.assertEqual(missing.status_code, 404)

        out_of_range = self.client.put(
            f"/api/rental/properties/{property_id}/occupancy",
            json={**rates, "occupancy_rate": 120},
        )
        self.assertEqual(out_of_range.status_code, 422)


if __name__ == "__main__":
    unittest.main()
