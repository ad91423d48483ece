import unittest
from datetime import datetime, timezone

from vowswap.analytics import AnalyticsEvent, AnalyticsEventType
from vowswap.data_service import InMemoryDataService, SqlDataService
from vowswap.errors import StoreError
from vowswap.filter_usage import (
    filter_removal_metrics,
    filter_usage_over_time,
    filter_usage_report,
    most_used_filters,
)

APPLY = AnalyticsEventType.FILTER_APPLY
REMOVE = AnalyticsEventType.FILTER_REMOVE

EVENTS = [
    (APPLY, "category", "2024-06-01T10:00:00+00:00"),
    (APPLY, "category", "2024-06-01T11:00:00+00:00"),
    (APPLY, "color", "2024-06-01T15:00:00+00:00"),
    (APPLY, None, "2024-06-01T16:00:00+00:00"),
    (AnalyticsEventType.SEARCH, None, "2024-06-01T17:00:00+00:00"),
    (APPLY, "category", "2024-06-02T09:00:00+00:00"),
    (APPLY, "price", "2024-06-02T12:00:00+00:00"),
    (REMOVE, "price", "2024-06-02T13:00:00+00:00"),
    (APPLY, "price", "2024-06-03T08:00:00+00:00"),
]


class FilterUsageContract:
    def make_service(self):
        raise NotImplementedError

    def setUp(self):
        self.data = self.make_service()
        rows = [
            AnalyticsEvent(
                event_type=event_type,
                session_id="sess-1",
                timestamp=timestamp,
                filter_type=filter_type,
                filter_value=["x"] if filter_type else None,
            ).as_row()
            for event_type, filter_type, timestamp in EVENTS
        ]
        self.data.table("analytics_events").insert(rows).execute()

    def test_most_used_filters(self):
        counts = most_used_filters(self.data)
        self.assertEqual(
            [(c.filter_type, c.count) for c in counts],
            [("category", 3), ("price", 2), ("color", 1)],
        )
        self.assertEqual(len(most_used_filters(self.data, limit=2)), 2)
        self.assertEqual(counts[0].as_dict(), {"filterType": "category", "count": 3})

    def test_most_used_filters_within_date_range(self):
        counts = most_used_filters(self.data, start="2024-06-02")
        self.assertEqual(
            [(c.filter_type, c.count) for c in counts], [("price", 2), ("category", 1)]
        )
        counts = most_used_filters(self.data, end="2024-06-01T23:59:59+00:00")
        self.assertEqual(
            [(c.filter_type, c.count) for c in counts], [("category", 2), ("color", 1)]
        )

    def test_usage_over_time_groups_by_day(self):
        usage = filter_usage_over_time(
            self.data, start="2024-06-01", end="2024-06-30"
        )
        self.assertEqual(
            [(u.date, u.filter_type, u.count) for u in usage],
            [
                ("2024-06-01", "category", 2),
                ("2024-06-01", "color", 1),
                ("2024-06-02", "category", 1),
                ("2024-06-02", "price", 1),
                ("2024-06-03", "price", 1),
            ],
        )

    def test_usage_over_time_defaults_to_last_thirty_days(self):
        soon_after = datetime(2024, 6, 10, tzinfo=timezone.utc)
        self.assertEqual(len(filter_usage_over_time(self.data, now=soon_after)), 5)
        much_later = datetime(2024, 8, 1, tzinfo=timezone.utc)
        self.assertEqual(filter_usage_over_time(self.data, now=much_later), [])

    def test_removal_metrics(self):
        metrics = filter_removal_metrics(self.data)
        self.assertEqual(
            [(m.filter_type, m.applied_count, m.removed_count, m.ratio) for m in metrics],
            [("category", 3, 0, 0.0), ("price", 2, 1, 0.5), ("color", 1, 0, 0.0)],
        )

    def test_report_uses_wire_names(self):
        report = filter_usage_report(
            self.data, limit=1, start="2024-06-01", end="2024-06-30"
        ).as_dict()
        self.assertEqual(report["mostUsedFilters"], [{"filterType": "category", "count": 3}])
        self.assertEqual(
            report["filterRemovalMetrics"],
            [{"filterType": "category", "appliedCount": 3, "removedCount": 0, "ratio": 0.0}],
        )
        self.assertEqual(len(report["filterUsageOverTime"]), 5)


class InMemoryFilterUsageTests(FilterUsageContract, unittest.TestCase):
    def make_service(self):
        return InMemoryDataService()

    def test_store_error_is_raised(self):
        self.data.fail_next("analytics_events", "timeout")
        with self.assertRaises(StoreError):
            most_used_filters(self.data)


class SqlFilterUsageTests(FilterUsageContract, unittest.TestCase):
    def make_service(self):
        return SqlDataService("sqlite+pysqlite:///:memory:")


if __name__ == "__main__":
    unittest.main()
