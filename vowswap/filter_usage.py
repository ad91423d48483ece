"""
Filter usage reports aggregated from stored analytics events.

Events are read through the data service and grouped here, so the same
reports work against every data service backend.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from vowswap.analytics import AnalyticsEventType
from vowswap.data_service import DataService
from vowswap.errors import StoreError

logger = logging.getLogger(__name__)

ANALYTICS_TABLE = "analytics_events"
DEFAULT_REPORT_LIMIT = 10
USAGE_WINDOW_DAYS = 30


@dataclass
class FilterCount:
    filter_type: str
    count: int

    def as_dict(self) -> dict:
        return {"filterType": self.filter_type, "count": self.count}


@dataclass
class DailyFilterCount:
    date: str
    filter_type: str
    count: int

    def as_dict(self) -> dict:
        return {"date": self.date, "filterType": self.filter_type, "count": self.count}


@dataclass
class FilterRemovalMetric:
    filter_type: str
    applied_count: int
    removed_count: int

    @property
    def ratio(self) -> float:
        if self.applied_count <= 0:
            return 0.0
        return self.removed_count / self.applied_count

    def as_dict(self) -> dict:
        return {
            "filterType": self.filter_type,
            "appliedCount": self.applied_count,
            "removedCount": self.removed_count,
            "ratio": self.ratio,
        }


@dataclass
class FilterUsageReport:
    most_used_filters: List[FilterCount] = field(default_factory=list)
    filter_usage_over_time: List[DailyFilterCount] = field(default_factory=list)
    filter_removal_metrics: List[FilterRemovalMetric] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "mostUsedFilters": [item.as_dict() for item in self.most_used_filters],
            "filterUsageOverTime": [item.as_dict() for item in self.filter_usage_over_time],
            "filterRemovalMetrics": [item.as_dict() for item in self.filter_removal_metrics],
        }


def _fetch_filter_events(
    data: DataService,
    event_type: AnalyticsEventType,
    start: Optional[str],
    end: Optional[str],
    table_name: str,
) -> List[dict]:
    request = (
        data.table(table_name)
        .select("filterType, timestamp")
        .eq("eventType", event_type.value)
    )
    if start:
        request = request.gte("timestamp", start)
    if end:
        request = request.lte("timestamp", end)
    result = request.execute()
    if result.error:
        logger.error("Error reading %s events: %s", event_type.value, result.error)
        raise StoreError(result.error)
    return [row for row in result.data or [] if row.get("filterType")]


def _count_by_type(rows: List[dict]) -> Counter:
    return Counter(row["filterType"] for row in rows)


def _day(timestamp: str) -> str:
    moment = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


def most_used_filters(
    data: DataService,
    *,
    limit: int = DEFAULT_REPORT_LIMIT,
    start: Optional[str] = None,
    end: Optional[str] = None,
    table_name: str = ANALYTICS_TABLE,
) -> List[FilterCount]:
    """Count applied filters per filter type, most used first."""
    rows = _fetch_filter_events(data, AnalyticsEventType.FILTER_APPLY, start, end, table_name)
    return [
        FilterCount(filter_type=filter_type, count=count)
        for filter_type, count in _count_by_type(rows).most_common(limit)
    ]


def filter_usage_over_time(
    data: DataService,
    *,
    start: Optional[str] = None,
    end: Optional[str] = None,
    now: Optional[datetime] = None,
    table_name: str = ANALYTICS_TABLE,
) -> List[DailyFilterCount]:
    """
    Count applied filters per UTC day and filter type.

    Without an explicit range the last ``USAGE_WINDOW_DAYS`` days are reported.
    Results are ordered by date, then filter type.
    """
    now = now or datetime.now(timezone.utc)
    start = start or (now - timedelta(days=USAGE_WINDOW_DAYS)).isoformat()
    end = end or now.isoformat()
    rows = _fetch_filter_events(data, AnalyticsEventType.FILTER_APPLY, start, end, table_name)
    counts = Counter((_day(row["timestamp"]), row["filterType"]) for row in rows)
    return [
        DailyFilterCount(date=day, filter_type=filter_type, count=count)
        for (day, filter_type), count in sorted(counts.items())
    ]


def filter_removal_metrics(
    data: DataService,
    *,
    limit: int = DEFAULT_REPORT_LIMIT,
    start: Optional[str] = None,
    end: Optional[str] = None,
    table_name: str = ANALYTICS_TABLE,
) -> List[FilterRemovalMetric]:
    """Compare removals with applications for the most applied filter types."""
    applied = _count_by_type(
        _fetch_filter_events(data, AnalyticsEventType.FILTER_APPLY, start, end, table_name)
    )
    removed = _count_by_type(
        _fetch_filter_events(data, AnalyticsEventType.FILTER_REMOVE, start, end, table_name)
    )
    return [
        FilterRemovalMetric(
            filter_type=filter_type,
            applied_count=count,
            removed_count=removed.get(filter_type, 0),
        )
        for filter_type, count in applied.most_common(limit)
    ]


def filter_usage_report(
    data: DataService,
    *,
    limit: int = DEFAULT_REPORT_LIMIT,
    start: Optional[str] = None,
    end: Optional[str] = None,
    now: Optional[datetime] = None,
    table_name: str = ANALYTICS_TABLE,
) -> FilterUsageReport:
    return FilterUsageReport(
        most_used_filters=most_used_filters(
            data, limit=limit, start=start, end=end, table_name=table_name
        ),
        filter_usage_over_time=filter_usage_over_time(
            data, start=start, end=end, now=now, table_name=table_name
        ),
        filter_removal_metrics=filter_removal_metrics(
            data, limit=limit, start=start, end=end, table_name=table_name
        ),
    )
