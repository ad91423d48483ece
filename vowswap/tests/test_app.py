import unittest

from fastapi.testclient import TestClient

from vowswap.analytics import AnalyticsEvent, AnalyticsEventType, InMemoryAnalyticsClient
from vowswap.app import create_app
from vowswap.data_service import InMemoryDataService, SqlDataService
from vowswap.dependencies import get_analytics_client, get_data_service

BRIDE = {"X-User-Id": "bride-1"}
GROOM = {"X-User-Id": "groom-1"}


class FilterServiceApiTests(unittest.TestCase):
    def setUp(self):
        self.data = InMemoryDataService()
        self.analytics = InMemoryAnalyticsClient()
        app = create_app()
        app.dependency_overrides[get_data_service] = lambda: self.data
        app.dependency_overrides[get_analytics_client] = lambda: self.analytics
        self.client = TestClient(app)

    def _save(self, name="Ivory dresses", headers=BRIDE, **filter_data):
        response = self.client.post(
            "/api/saved-filters",
            json={"name": name, "filterData": filter_data},
            headers=headers,
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_requests_without_user_are_unauthorized(self):
        response = self.client.get("/api/saved-filters")
        self.assertEqual(response.status_code, 401)
        response = self.client.post("/api/saved-filters", json={"name": "x"})
        self.assertEqual(response.status_code, 401)

    def test_save_and_list_filters(self):
        saved = self._save(categories=["dress"], colors=["ivory"], priceMax=1200)
        self.assertEqual(saved["userId"], "bride-1")
        self.assertEqual(
            saved["filterData"],
            {"categories": ["dress"], "colors": ["ivory"], "priceMax": 1200},
        )
        self.assertEqual(len(self.analytics.of_type(AnalyticsEventType.SAVE_FILTER)), 1)

        response = self.client.get("/api/saved-filters", headers=BRIDE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual([f["id"] for f in response.json()["filters"]], [saved["id"]])

        response = self.client.get("/api/saved-filters", headers=GROOM)
        self.assertEqual(response.json()["filters"], [])

    def test_save_rejects_unknown_category(self):
        response = self.client.post(
            "/api/saved-filters",
            json={"name": "Bad", "filterData": {"categories": ["spaceship"]}},
            headers=BRIDE,
        )
        self.assertEqual(response.status_code, 422)

    def test_save_store_failure_is_bad_gateway(self):
        self.data.fail_next("saved_filters")
        response = self.client.post(
            "/api/saved-filters", json={"name": "Broken"}, headers=BRIDE
        )
        self.assertEqual(response.status_code, 502)

    def test_get_update_delete(self):
        saved = self._save(search="lace")
        filter_id = saved["id"]

        response = self.client.get(f"/api/saved-filters/{filter_id}", headers=BRIDE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "Ivory dresses")
        self.assertEqual(
            self.client.get(f"/api/saved-filters/{filter_id}", headers=GROOM).status_code,
            404,
        )

        response = self.client.patch(
            f"/api/saved-filters/{filter_id}",
            json={"name": "Lace", "filterData": {"search": "lace", "sortDirection": "asc"}},
            headers=BRIDE,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "Lace")
        self.assertEqual(
            response.json()["filterData"], {"search": "lace", "sortDirection": "asc"}
        )

        response = self.client.delete(f"/api/saved-filters/{filter_id}", headers=GROOM)
        self.assertEqual(response.status_code, 404)
        response = self.client.delete(f"/api/saved-filters/{filter_id}", headers=BRIDE)
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.data.rows("saved_filters"), [])

    def test_apply_returns_params_and_state(self):
        saved = self._save(styles=["boho"], priceMin=100)
        response = self.client.post(
            f"/api/saved-filters/{saved['id']}/apply", headers=BRIDE
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["filterParams"], {"styles": ["boho"], "priceMin": 100})
        self.assertEqual(payload["filterState"]["priceRange"], {"min": 100, "max": 10000})
        self.assertEqual(payload["filterState"]["sortBy"], "createdAt")

        response = self.client.post("/api/saved-filters/missing/apply", headers=BRIDE)
        self.assertEqual(response.status_code, 404)

    def test_filter_state_normalization(self):
        response = self.client.get(
            "/api/filters/state",
            params={"categories": "dress", "priceMin": "0", "priceMax": "500", "sortBy": "createdAt"},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["filterParams"], {"categories": ["dress"], "priceMax": 500})
        self.assertEqual(payload["filterState"]["priceRange"], {"min": 0, "max": 500})
        self.assertEqual(payload["filterState"]["search"], "")

    def test_filter_state_rejects_bad_numbers(self):
        response = self.client.get("/api/filters/state", params={"priceMin": "cheap"})
        self.assertEqual(response.status_code, 422)
        response = self.client.get("/api/filters/state", params={"conditions": "destroyed"})
        self.assertEqual(response.status_code, 422)

    def test_listings_filter(self):
        self.data.table("listings").insert(
            [
                {"id": "l1", "title": "Gown", "category": "dress", "price": 800.0,
                 "createdAt": "2024-01-01T00:00:00+00:00"},
                {"id": "l2", "title": "Arch", "category": "decor", "price": 200.0,
                 "createdAt": "2024-01-02T00:00:00+00:00"},
            ]
        ).execute()
        response = self.client.get(
            "/api/listings/filter", params={"categories": "dress,decor", "limit": "1"}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([row["id"] for row in payload["listings"]], ["l2"])
        self.assertEqual(
            payload["pagination"], {"total": 2, "page": 1, "limit": 1, "totalPages": 2}
        )

    def test_listings_limit_is_capped(self):
        response = self.client.get("/api/listings/filter", params={"limit": "1000"})
        self.assertEqual(response.status_code, 422)

    def test_listings_store_failure_is_bad_gateway(self):
        self.data.fail_next("listings")
        response = self.client.get("/api/listings/filter")
        self.assertEqual(response.status_code, 502)

    def test_listings_unknown_sort_is_unprocessable(self):
        app = create_app()
        app.dependency_overrides[get_data_service] = lambda: SqlDataService("sqlite://")
        response = TestClient(app).get("/api/listings/filter", params={"sortBy": "bogus"})
        self.assertEqual(response.status_code, 422)
        self.assertIn("sortBy", response.json()["detail"])

    def test_record_analytics_events(self):
        response = self.client.post(
            "/api/analytics/events",
            json={"eventType": "search", "searchQuery": "lace"},
            headers=BRIDE,
        )
        self.assertEqual(response.status_code, 202)
        response = self.client.post(
            "/api/analytics/events",
            json={"eventType": "filter_apply", "filterType": "category", "filterValue": ["dress"]},
        )
        self.assertEqual(response.status_code, 202)

        search, applied = self.analytics.events
        self.assertEqual(search.event_type, AnalyticsEventType.SEARCH)
        self.assertEqual((search.search_query, search.user_id), ("lace", "bride-1"))
        self.assertEqual(applied.filter_value, ["dress"])
        self.assertIsNone(applied.user_id)

    def test_record_analytics_event_requires_its_fields(self):
        response = self.client.post("/api/analytics/events", json={"eventType": "listing_view"})
        self.assertEqual(response.status_code, 422)
        response = self.client.post("/api/analytics/events", json={"eventType": "save_filter"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.analytics.events, [])

    def test_filter_usage_report(self):
        rows = [
            AnalyticsEvent(
                event_type=event_type,
                session_id="sess-1",
                timestamp=timestamp,
                filter_type=filter_type,
            ).as_row()
            for event_type, filter_type, timestamp in [
                (AnalyticsEventType.FILTER_APPLY, "category", "2024-06-01T10:00:00+00:00"),
                (AnalyticsEventType.FILTER_APPLY, "category", "2024-06-02T10:00:00+00:00"),
                (AnalyticsEventType.FILTER_APPLY, "price", "2024-06-02T11:00:00+00:00"),
                (AnalyticsEventType.FILTER_REMOVE, "price", "2024-06-02T12:00:00+00:00"),
            ]
        ]
        self.data.table("analytics_events").insert(rows).execute()

        response = self.client.get(
            "/api/analytics/filter-usage",
            params={"startDate": "2024-06-01", "endDate": "2024-06-30"},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(
            payload["mostUsedFilters"],
            [{"filterType": "category", "count": 2}, {"filterType": "price", "count": 1}],
        )
        self.assertEqual(
            payload["filterUsageOverTime"],
            [
                {"date": "2024-06-01", "filterType": "category", "count": 1},
                {"date": "2024-06-02", "filterType": "category", "count": 1},
                {"date": "2024-06-02", "filterType": "price", "count": 1},
            ],
        )
        self.assertEqual(payload["filterRemovalMetrics"][1]["ratio"], 1.0)

        response = self.client.get(
            "/api/analytics/filter-usage", params={"startDate": "2024-06-01", "limit": "1"}
        )
        self.assertEqual(len(response.json()["mostUsedFilters"]), 1)

    def test_filter_usage_store_failure_is_bad_gateway(self):
        self.data.fail_next("analytics_events")
        response = self.client.get("/api/analytics/filter-usage")
        self.assertEqual(response.status_code, 502)


if __name__ == "__main__":
    unittest.main()
