"""
Analytics collaborator for filter usage events.

Tracking is fire-and-forget: ``track`` never raises, failures are logged.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Protocol

from vowswap.data_service import DataService

logger = logging.getLogger(__name__)


class AnalyticsEventType(str, Enum):
    SEARCH = "search"
    FILTER_APPLY = "filter_apply"
    FILTER_REMOVE = "filter_remove"
    FILTER_CLEAR = "filter_clear"
    LISTING_VIEW = "listing_view"
    LISTING_CLICK = "listing_click"
    SAVE_FILTER = "save_filter"
    APPLY_SAVED_FILTER = "apply_saved_filter"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AnalyticsEvent:
    event_type: AnalyticsEventType
    session_id: str
    timestamp: str = field(default_factory=utc_now_iso)
    user_id: Optional[str] = None
    filter_type: Optional[str] = None
    filter_value: Any = None
    search_query: Optional[str] = None
    listing_id: Optional[str] = None
    metadata: Optional[dict] = None

    def as_row(self) -> dict:
        return {
            "eventType": self.event_type.value,
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "userId": self.user_id,
            "filterType": self.filter_type,
            "filterValue": self.filter_value,
            "searchQuery": self.search_query,
            "listingId": self.listing_id,
            "metadata": self.metadata,
        }


class AnalyticsClient(Protocol):
    """Records analytics events without blocking or failing the caller."""

    def track(self, event_type: AnalyticsEventType, **fields: Any) -> None:
        ...


@dataclass
class InMemoryAnalyticsClient:
    """Test double that keeps every tracked event."""

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    events: List[AnalyticsEvent] = field(default_factory=list)

    def track(self, event_type: AnalyticsEventType, **fields: Any) -> None:
        self.events.append(
            AnalyticsEvent(event_type=event_type, session_id=self.session_id, **fields)
        )

    def of_type(self, event_type: AnalyticsEventType) -> List[AnalyticsEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def reset(self) -> None:
        self.events.clear()


@dataclass
class TableAnalyticsClient:
    """
    Queues events and writes them to the analytics table through the data service.

    The queue is flushed after every tracked event. When a flush fails the
    events go back to the front of the queue and are retried with the next one.
    At most ``max_queue_size`` events are held; the oldest are dropped first.
    """

    data: DataService
    table_name: str = "analytics_events"
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    queue: List[AnalyticsEvent] = field(default_factory=list)
    max_queue_size: int = 1000

    def __post_init__(self):
        self._lock = threading.Lock()

    def track(self, event_type: AnalyticsEventType, **fields: Any) -> None:
        try:
            event = AnalyticsEvent(event_type=event_type, session_id=self.session_id, **fields)
            with self._lock:
                self.queue.append(event)
                self._trim_queue()
            self.flush()
        except Exception:
            logger.exception("Error tracking analytics event %s", event_type)

    def _trim_queue(self) -> None:
        overflow = len(self.queue) - self.max_queue_size
        if overflow > 0:
            logger.warning("Analytics queue full, dropping %d oldest events", overflow)
            del self.queue[:overflow]

    def flush(self) -> int:
        """Persist queued events; returns how many were written."""
        with self._lock:
            if not self.queue:
                return 0
            pending, self.queue = self.queue, []
        try:
            result = (
                self.data.table(self.table_name)
                .insert([event.as_row() for event in pending])
                .execute()
            )
            error = result.error
        except Exception as exc:
            error = str(exc)
        if error:
            logger.error("Error saving analytics events: %s", error)
            with self._lock:
                self.queue = pending + self.queue
                self._trim_queue()
            return 0
        return len(pending)


def track_save_filter(client: AnalyticsClient, name: str, filter_data: dict, *, user_id: Optional[str] = None) -> None:
    client.track(
        AnalyticsEventType.SAVE_FILTER,
        user_id=user_id,
        metadata={"filterName": name, "filterData": filter_data},
    )


def track_apply_saved_filter(client: AnalyticsClient, filter_id: str, name: str, *, user_id: Optional[str] = None) -> None:
    client.track(
        AnalyticsEventType.APPLY_SAVED_FILTER,
        user_id=user_id,
        metadata={"filterId": filter_id, "filterName": name},
    )


def track_search(client: AnalyticsClient, search_query: str, *, user_id: Optional[str] = None) -> None:
    client.track(AnalyticsEventType.SEARCH, user_id=user_id, search_query=search_query)


def track_filter_apply(client: AnalyticsClient, filter_type: str, filter_value: Any, *, user_id: Optional[str] = None) -> None:
    client.track(
        AnalyticsEventType.FILTER_APPLY,
        user_id=user_id,
        filter_type=filter_type,
        filter_value=filter_value,
    )


def track_filter_remove(client: AnalyticsClient, filter_type: str, filter_value: Any, *, user_id: Optional[str] = None) -> None:
    client.track(
        AnalyticsEventType.FILTER_REMOVE,
        user_id=user_id,
        filter_type=filter_type,
        filter_value=filter_value,
    )


def track_filter_clear(client: AnalyticsClient, *, user_id: Optional[str] = None) -> None:
    client.track(AnalyticsEventType.FILTER_CLEAR, user_id=user_id)


def track_listing_view(client: AnalyticsClient, listing_id: str, *, user_id: Optional[str] = None) -> None:
    client.track(AnalyticsEventType.LISTING_VIEW, user_id=user_id, listing_id=listing_id)


def track_listing_click(
    client: AnalyticsClient,
    listing_id: str,
    metadata: Optional[dict] = None,
    *,
    user_id: Optional[str] = None,
) -> None:
    client.track(
        AnalyticsEventType.LISTING_CLICK,
        user_id=user_id,
        listing_id=listing_id,
        metadata=metadata,
    )
