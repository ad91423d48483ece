"""
Per-user saved filter store.

Every read, update and delete is scoped to the authenticated user. Failure
handling differs per operation: listing and deleting degrade to ``[]`` and
``False``, single reads, updates and applies return ``None``, saving raises.
A missing session always raises ``AuthenticationError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional

from vowswap.analytics import (
    AnalyticsClient,
    track_apply_saved_filter,
    track_save_filter,
    utc_now_iso,
)
from vowswap.auth import AuthClient
from vowswap.data_service import DataService
from vowswap.errors import AuthenticationError, NotFoundError, StoreError
from vowswap.filters import FilterParams

logger = logging.getLogger(__name__)

SAVED_FILTERS_TABLE = "saved_filters"

# Fields callers may change through update_saved_filter, by either spelling.
_UPDATABLE_COLUMNS = {
    "name": "name",
    "filter_data": "filterData",
    "filterData": "filterData",
}


def _normalize_filter_data(value: Any) -> dict:
    """Coerce ``FilterParams`` or a camelCase mapping to the stored payload."""
    if isinstance(value, FilterParams):
        return value.to_dict()
    return FilterParams.from_dict(value).to_dict()


@dataclass
class SavedFilter:
    user_id: str
    name: str
    filter_data: FilterParams = field(default_factory=FilterParams)
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def as_row(self) -> dict:
        row = {
            "userId": self.user_id,
            "name": self.name,
            "filterData": self.filter_data.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SavedFilter":
        return cls(
            id=row.get("id"),
            user_id=row["userId"],
            name=row["name"],
            filter_data=FilterParams.from_dict(row.get("filterData")),
            created_at=row.get("createdAt"),
            updated_at=row.get("updatedAt"),
        )


class SavedFiltersService:
    def __init__(
        self,
        data: DataService,
        auth: AuthClient,
        analytics: AnalyticsClient,
        *,
        table_name: str = SAVED_FILTERS_TABLE,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.data = data
        self.auth = auth
        self.analytics = analytics
        self.table_name = table_name
        self._clock = clock

    def get_user_id(self) -> str:
        session = self.auth.get_session()
        if session is None or not session.user_id:
            raise AuthenticationError()
        return session.user_id

    def _fetch_owned(self, user_id: str, filter_id: str) -> SavedFilter:
        result = (
            self.data.table(self.table_name)
            .select("*")
            .eq("id", filter_id)
            .eq("userId", user_id)
            .execute()
        )
        if result.error:
            raise StoreError(result.error)
        if not result.data:
            raise NotFoundError(f"Saved filter {filter_id} not found")
        if len(result.data) > 1:
            raise StoreError(f"Multiple saved filters match {filter_id}")
        return SavedFilter.from_row(result.data[0])

    def save_filter(self, name: str, filter_data: FilterParams) -> SavedFilter:
        user_id = self.get_user_id()
        timestamp = self._clock()
        record = SavedFilter(
            user_id=user_id,
            name=name,
            filter_data=filter_data,
            created_at=timestamp,
            updated_at=timestamp,
        )
        result = (
            self.data.table(self.table_name)
            .insert(record.as_row())
            .select()
            .single()
            .execute()
        )
        if result.error:
            logger.error("Error saving filter %r: %s", name, result.error)
            raise StoreError(result.error)
        track_save_filter(self.analytics, name, filter_data.to_dict(), user_id=user_id)
        return SavedFilter.from_row(result.data)

    def get_saved_filters(self) -> List[SavedFilter]:
        """Return the caller's saved filters, most recently used first."""
        user_id = self.get_user_id()
        try:
            result = (
                self.data.table(self.table_name)
                .select("*")
                .eq("userId", user_id)
                .order("updatedAt", ascending=False)
                .execute()
            )
            if result.error:
                raise StoreError(result.error)
            return [SavedFilter.from_row(row) for row in result.data or []]
        except Exception:
            logger.exception("Error fetching saved filters")
            return []

    def get_saved_filter_by_id(self, filter_id: str) -> Optional[SavedFilter]:
        user_id = self.get_user_id()
        try:
            return self._fetch_owned(user_id, filter_id)
        except NotFoundError as exc:
            logger.warning("%s", exc)
            return None
        except Exception:
            logger.exception("Error fetching saved filter %s", filter_id)
            return None

    def update_saved_filter(
        self, filter_id: str, updates: Mapping[str, Any]
    ) -> Optional[SavedFilter]:
        """
        Merge ``updates`` into the caller's filter.

        ``updated_at`` is refreshed on every call; ``id``, ``user_id`` and
        ``created_at`` are never changed.
        """
        user_id = self.get_user_id()
        try:
            patch = {}
            for key, value in updates.items():
                column = _UPDATABLE_COLUMNS.get(key)
                if column is None:
                    continue
                if column == "filterData":
                    value = _normalize_filter_data(value)
                patch[column] = value
            patch["updatedAt"] = self._clock()
            result = (
                self.data.table(self.table_name)
                .update(patch)
                .eq("id", filter_id)
                .eq("userId", user_id)
                .select()
                .single()
                .execute()
            )
            if result.error:
                raise StoreError(result.error)
            return SavedFilter.from_row(result.data)
        except Exception:
            logger.exception("Error updating saved filter %s", filter_id)
            return None

    def delete_saved_filter(self, filter_id: str) -> bool:
        user_id = self.get_user_id()
        try:
            result = (
                self.data.table(self.table_name)
                .delete()
                .eq("id", filter_id)
                .eq("userId", user_id)
                .select("id")
                .execute()
            )
            if result.error:
                raise StoreError(result.error)
            if not result.data:
                raise NotFoundError(f"Saved filter {filter_id} not found")
            return True
        except NotFoundError as exc:
            logger.warning("%s", exc)
            return False
        except Exception:
            logger.exception("Error deleting saved filter %s", filter_id)
            return False

    def apply_saved_filter(self, filter_id: str) -> Optional[FilterParams]:
        """
        Return the stored params and mark the filter as recently used.

        The read and the timestamp bump are separate requests; concurrent
        applies of the same filter simply race on ``updated_at``.
        """
        user_id = self.get_user_id()
        try:
            saved = self._fetch_owned(user_id, filter_id)
            track_apply_saved_filter(self.analytics, filter_id, saved.name, user_id=user_id)
            if self.update_saved_filter(filter_id, {}) is None:
                logger.warning("Could not bump updatedAt for saved filter %s", filter_id)
            return saved.filter_data
        except Exception:
            logger.exception("Error applying saved filter %s", filter_id)
            return None
