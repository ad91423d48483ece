"""
Table-oriented data service with an in-memory test implementation and a
SQLAlchemy-backed implementation.

Requests are built by chaining modifiers on a ``TableRequest`` and run with
``execute()``, which always returns a ``QueryResult``; backend failures are
reported through ``QueryResult.error`` rather than raised.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from sqlalchemy import (
    JSON,
    Column,
    Float,
    MetaData,
    String,
    Table,
    cast,
    create_engine,
    delete,
    func,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

SINGLE_ROW_ERROR = "JSON object requested, multiple (or no) rows returned"


@dataclass
class QueryResult:
    data: Any = None
    error: Optional[str] = None
    count: Optional[int] = None


@dataclass
class Filter:
    op: str
    column: Optional[str] = None
    value: Any = None


@dataclass
class Ordering:
    column: str
    ascending: bool = True


class TableRequest:
    """Chainable request against one table."""

    def __init__(self, table: str, executor: Callable[["TableRequest"], QueryResult]):
        self.table = table
        self.action: Optional[str] = None
        self.columns: str = "*"
        self.rows: List[dict] = []
        self.patch: dict = {}
        self.filters: List[Filter] = []
        self.orderings: List[Ordering] = []
        self.row_range: Optional[tuple[int, int]] = None
        self.expect_single = False
        self.with_count = False
        self._executor = executor

    def select(self, columns: str = "*", *, count: bool = False) -> "TableRequest":
        # After insert/update/delete this only narrows the returned columns.
        if self.action is None:
            self.action = "select"
        self.columns = columns
        self.with_count = count
        return self

    def insert(self, rows: dict | Sequence[dict]) -> "TableRequest":
        self.action = "insert"
        self.rows = [dict(rows)] if isinstance(rows, dict) else [dict(r) for r in rows]
        return self

    def update(self, patch: dict) -> "TableRequest":
        self.action = "update"
        self.patch = dict(patch)
        return self

    def delete(self) -> "TableRequest":
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "TableRequest":
        self.filters.append(Filter("eq", column, value))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "TableRequest":
        self.filters.append(Filter("in", column, list(values)))
        return self

    def gte(self, column: str, value: Any) -> "TableRequest":
        self.filters.append(Filter("gte", column, value))
        return self

    def lte(self, column: str, value: Any) -> "TableRequest":
        self.filters.append(Filter("lte", column, value))
        return self

    def or_ilike(self, conditions: Iterable[tuple[str, str]]) -> "TableRequest":
        """Match rows where any ``(column, pattern)`` pair matches case-insensitively."""
        self.filters.append(Filter("or_ilike", value=list(conditions)))
        return self

    def order(self, column: str, *, ascending: bool = True) -> "TableRequest":
        self.orderings.append(Ordering(column, ascending))
        return self

    def range(self, start: int, end: int) -> "TableRequest":
        self.row_range = (start, end)
        return self

    def single(self) -> "TableRequest":
        self.expect_single = True
        return self

    def execute(self) -> QueryResult:
        if self.action is None:
            return QueryResult(error="No action specified for request")
        return self._executor(self)


class DataService(Protocol):
    """Entry point for table requests."""

    def table(self, name: str) -> TableRequest:
        ...


def _project(row: dict, columns: str) -> dict:
    if columns.strip() == "*":
        return row
    wanted = [c.strip() for c in columns.split(",") if c.strip()]
    return {c: row.get(c) for c in wanted}


def _finish(request: TableRequest, rows: List[dict], count: Optional[int]) -> QueryResult:
    rows = [_project(row, request.columns) for row in rows]
    if request.expect_single:
        if len(rows) != 1:
            return QueryResult(error=SINGLE_ROW_ERROR)
        return QueryResult(data=rows[0], count=count)
    return QueryResult(data=rows, count=count)


def _like_to_regex(pattern: str) -> re.Pattern:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


@dataclass
class InMemoryDataService:
    """Test double keeping each table as a list of row dicts."""

    tables: Dict[str, List[dict]] = field(default_factory=dict)
    pending_errors: Dict[str, List[str]] = field(default_factory=dict)
    requests: List[TableRequest] = field(default_factory=list)

    def table(self, name: str) -> TableRequest:
        return TableRequest(name, self._execute)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.tables.clear()
        self.pending_errors.clear()
        self.requests.clear()

    def fail_next(self, table: str, message: str = "simulated failure") -> None:
        """Make the next request against ``table`` return an error."""
        self.pending_errors.setdefault(table, []).append(message)

    def rows(self, table: str) -> List[dict]:
        return self.tables.setdefault(table, [])

    def _matches(self, row: dict, flt: Filter) -> bool:
        if flt.op == "eq":
            return row.get(flt.column) == flt.value
        if flt.op == "in":
            return row.get(flt.column) in flt.value
        if flt.op == "gte":
            value = row.get(flt.column)
            return value is not None and value >= flt.value
        if flt.op == "lte":
            value = row.get(flt.column)
            return value is not None and value <= flt.value
        if flt.op == "or_ilike":
            for column, pattern in flt.value:
                value = row.get(column)
                if value is not None and _like_to_regex(pattern).fullmatch(_as_text(value)):
                    return True
            return False
        raise ValueError(f"Unsupported filter {flt.op}")

    def _select_rows(self, request: TableRequest) -> List[dict]:
        return [
            row
            for row in self.rows(request.table)
            if all(self._matches(row, flt) for flt in request.filters)
        ]

    def _execute(self, request: TableRequest) -> QueryResult:
        self.requests.append(request)
        errors = self.pending_errors.get(request.table)
        if errors:
            return QueryResult(error=errors.pop(0))

        count = None
        if request.action == "select":
            rows = self._select_rows(request)
            for ordering in reversed(request.orderings):
                rows.sort(
                    key=lambda r: (r.get(ordering.column) is None, r.get(ordering.column)),
                    reverse=not ordering.ascending,
                )
            if request.with_count:
                count = len(rows)
            if request.row_range:
                start, end = request.row_range
                rows = rows[start : end + 1]
        elif request.action == "insert":
            rows = []
            for row in request.rows:
                stored = copy.deepcopy(row)
                stored.setdefault("id", uuid.uuid4().hex)
                self.rows(request.table).append(stored)
                rows.append(stored)
        elif request.action == "update":
            rows = self._select_rows(request)
            for row in rows:
                row.update(copy.deepcopy(request.patch))
        elif request.action == "delete":
            rows = self._select_rows(request)
            table = self.rows(request.table)
            table[:] = [row for row in table if row not in rows]
        else:
            return QueryResult(error=f"Unsupported action {request.action}")
        return _finish(request, [copy.deepcopy(row) for row in rows], count)


metadata = MetaData()

saved_filters_table = Table(
    "saved_filters",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("filterData", JSON, nullable=False),
    Column("createdAt", String, nullable=False),
    Column("updatedAt", String, nullable=False, index=True),
)

analytics_events_table = Table(
    "analytics_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("eventType", String, nullable=False, index=True),
    Column("filterType", String, nullable=True),
    Column("filterValue", JSON, nullable=True),
    Column("searchQuery", String, nullable=True),
    Column("timestamp", String, nullable=False),
    Column("userId", String, nullable=True),
    Column("sessionId", String, nullable=False),
    Column("listingId", String, nullable=True),
    Column("metadata", JSON, nullable=True),
)

listings_table = Table(
    "listings",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, nullable=True, index=True),
    Column("title", String, nullable=False),
    Column("description", String, nullable=True),
    Column("category", String, nullable=True, index=True),
    Column("condition", String, nullable=True),
    Column("price", Float, nullable=True),
    Column("style", JSON, nullable=True),
    Column("color", JSON, nullable=True),
    Column("photos", JSON, nullable=True),
    Column("createdAt", String, nullable=True),
)


class SqlDataService:
    """
    SQLAlchemy Core implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDataService")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        metadata.create_all(self.engine)

    def table(self, name: str) -> TableRequest:
        return TableRequest(name, self._execute)

    @staticmethod
    def _condition(table: Table, flt: Filter):
        if flt.op == "eq":
            return table.c[flt.column] == flt.value
        if flt.op == "in":
            return table.c[flt.column].in_(flt.value)
        if flt.op == "gte":
            return table.c[flt.column] >= flt.value
        if flt.op == "lte":
            return table.c[flt.column] <= flt.value
        if flt.op == "or_ilike":
            return or_(
                *[cast(table.c[column], String).ilike(pattern) for column, pattern in flt.value]
            )
        raise ValueError(f"Unsupported filter {flt.op}")

    @staticmethod
    def _fill_ids(table: Table, rows: List[dict]) -> List[dict]:
        filled = []
        for row in rows:
            row = {k: v for k, v in row.items() if k in table.c}
            row.setdefault("id", uuid.uuid4().hex)
            filled.append(row)
        # executemany needs the same keys in every row
        keys = {key for row in filled for key in row}
        return [{key: row.get(key) for key in keys} for row in filled]

    def _execute(self, request: TableRequest) -> QueryResult:
        table = metadata.tables.get(request.table)
        if table is None:
            return QueryResult(error=f"Unknown table {request.table}")
        try:
            where = [self._condition(table, flt) for flt in request.filters]
            with self.engine.begin() as conn:
                count = None
                if request.action == "select":
                    stmt = select(table).where(*where)
                    for ordering in request.orderings:
                        column = table.c[ordering.column]
                        stmt = stmt.order_by(column.asc() if ordering.ascending else column.desc())
                    if request.row_range:
                        start, end = request.row_range
                        stmt = stmt.offset(start).limit(max(end - start + 1, 0))
                    if request.with_count:
                        count = conn.execute(
                            select(func.count()).select_from(table).where(*where)
                        ).scalar_one()
                    rows = [dict(r._mapping) for r in conn.execute(stmt)]
                elif request.action == "insert":
                    rows = self._fill_ids(table, request.rows)
                    if rows:
                        conn.execute(insert(table), rows)
                    ids = [row["id"] for row in rows]
                    rows = [
                        dict(r._mapping)
                        for r in conn.execute(select(table).where(table.c.id.in_(ids)))
                    ]
                elif request.action == "update":
                    ids = [r.id for r in conn.execute(select(table.c.id).where(*where))]
                    patch = {k: v for k, v in request.patch.items() if k in table.c}
                    if ids and patch:
                        conn.execute(update(table).where(table.c.id.in_(ids)).values(**patch))
                    rows = [
                        dict(r._mapping)
                        for r in conn.execute(select(table).where(table.c.id.in_(ids)))
                    ]
                elif request.action == "delete":
                    rows = [dict(r._mapping) for r in conn.execute(select(table).where(*where))]
                    ids = [row["id"] for row in rows]
                    if ids:
                        conn.execute(delete(table).where(table.c.id.in_(ids)))
                else:
                    return QueryResult(error=f"Unsupported action {request.action}")
        except (SQLAlchemyError, KeyError) as exc:
            logger.warning("Request against %s failed: %s", request.table, exc)
            return QueryResult(error=str(exc))
        return _finish(request, rows, count)
