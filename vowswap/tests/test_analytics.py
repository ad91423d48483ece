import unittest
from unittest.mock import patch

from vowswap.analytics import (
    AnalyticsEventType,
    InMemoryAnalyticsClient,
    TableAnalyticsClient,
    track_apply_saved_filter,
    track_filter_apply,
    track_filter_clear,
    track_filter_remove,
    track_listing_click,
    track_listing_view,
    track_save_filter,
    track_search,
)
from vowswap.data_service import InMemoryDataService


class InMemoryAnalyticsTests(unittest.TestCase):
    def test_helpers_record_metadata(self):
        client = InMemoryAnalyticsClient()
        track_save_filter(client, "Boho", {"styles": ["boho"]}, user_id="u1")
        track_apply_saved_filter(client, "f1", "Boho", user_id="u1")

        saved = client.of_type(AnalyticsEventType.SAVE_FILTER)
        self.assertEqual(len(saved), 1)
        self.assertEqual(
            saved[0].metadata, {"filterName": "Boho", "filterData": {"styles": ["boho"]}}
        )
        self.assertEqual(saved[0].user_id, "u1")

        applied = client.of_type(AnalyticsEventType.APPLY_SAVED_FILTER)
        self.assertEqual(applied[0].metadata, {"filterId": "f1", "filterName": "Boho"})
        self.assertEqual(applied[0].session_id, client.session_id)

    def test_interaction_helpers_fill_event_fields(self):
        client = InMemoryAnalyticsClient()
        track_search(client, "lace veil", user_id="u1")
        track_filter_apply(client, "category", ["dress"])
        track_filter_remove(client, "price", 500)
        track_filter_clear(client)
        track_listing_view(client, "l1")
        track_listing_click(client, "l2", {"position": 3})

        self.assertEqual(
            [event.event_type for event in client.events],
            [
                AnalyticsEventType.SEARCH,
                AnalyticsEventType.FILTER_APPLY,
                AnalyticsEventType.FILTER_REMOVE,
                AnalyticsEventType.FILTER_CLEAR,
                AnalyticsEventType.LISTING_VIEW,
                AnalyticsEventType.LISTING_CLICK,
            ],
        )
        search, applied, removed, cleared, viewed, clicked = client.events
        self.assertEqual(search.search_query, "lace veil")
        self.assertEqual(search.user_id, "u1")
        self.assertEqual((applied.filter_type, applied.filter_value), ("category", ["dress"]))
        self.assertEqual((removed.filter_type, removed.filter_value), ("price", 500))
        self.assertIsNone(cleared.filter_type)
        self.assertEqual(viewed.listing_id, "l1")
        self.assertEqual(clicked.metadata, {"position": 3})


class TableAnalyticsTests(unittest.TestCase):
    def setUp(self):
        self.data = InMemoryDataService()
        self.client = TableAnalyticsClient(self.data, session_id="sess-1")

    def test_track_writes_event_row(self):
        self.client.track(AnalyticsEventType.SEARCH, search_query="lace veil")
        rows = self.data.rows("analytics_events")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["eventType"], "search")
        self.assertEqual(rows[0]["searchQuery"], "lace veil")
        self.assertEqual(rows[0]["sessionId"], "sess-1")
        self.assertTrue(rows[0]["timestamp"])
        self.assertEqual(self.client.queue, [])

    def test_failed_flush_requeues_events(self):
        self.data.fail_next("analytics_events", "timeout")
        self.client.track(AnalyticsEventType.FILTER_CLEAR)
        self.assertEqual(len(self.client.queue), 1)
        self.assertEqual(self.data.rows("analytics_events"), [])

        self.client.track(AnalyticsEventType.LISTING_VIEW, listing_id="l1")
        rows = self.data.rows("analytics_events")
        self.assertEqual([r["eventType"] for r in rows], ["filter_clear", "listing_view"])
        self.assertEqual(self.client.queue, [])

    def test_flush_with_empty_queue(self):
        self.assertEqual(self.client.flush(), 0)

    def test_track_keeps_event_when_data_service_raises(self):
        with patch.object(self.data, "table", side_effect=RuntimeError("boom")):
            self.client.track(AnalyticsEventType.FILTER_APPLY, filter_type="category")
        self.assertEqual(len(self.client.queue), 1)

    def test_queue_is_capped_while_store_is_down(self):
        client = TableAnalyticsClient(self.data, session_id="sess-2", max_queue_size=3)
        with self.assertLogs("vowswap.analytics", level="WARNING"):
            for index in range(10):
                self.data.fail_next("analytics_events")
                client.track(AnalyticsEventType.LISTING_VIEW, listing_id=f"l{index}")
        self.assertEqual(len(client.queue), 3)
        self.assertEqual([e.listing_id for e in client.queue], ["l7", "l8", "l9"])

        self.assertEqual(client.flush(), 3)
        self.assertEqual(
            [row["listingId"] for row in self.data.rows("analytics_events")],
            ["l7", "l8", "l9"],
        )


if __name__ == "__main__":
    unittest.main()
