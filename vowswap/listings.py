"""
Filtered listing queries driven by ``FilterParams``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List

from vowswap.data_service import DataService, TableRequest
from vowswap.errors import StoreError
from vowswap.filters import DEFAULT_SORT_BY, DEFAULT_SORT_DIRECTION, FilterParams

LISTINGS_TABLE = "listings"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

# Columns a listing page may be ordered by.
SORTABLE_COLUMNS = ("createdAt", "price", "title", "category", "condition")


@dataclass
class Pagination:
    total: int
    page: int
    limit: int
    total_pages: int

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


@dataclass
class ListingPage:
    listings: List[dict] = field(default_factory=list)
    pagination: Pagination = field(default_factory=lambda: Pagination(0, DEFAULT_PAGE, DEFAULT_LIMIT, 0))


def apply_filters(request: TableRequest, params: FilterParams) -> TableRequest:
    """Add the WHERE-style constraints of ``params`` to ``request``."""
    if params.search:
        pattern = f"%{params.search}%"
        request = request.or_ilike([("title", pattern), ("description", pattern)])
    if params.categories:
        request = request.in_("category", params.categories)
    if params.conditions:
        request = request.in_("condition", params.conditions)
    if params.price_min is not None:
        request = request.gte("price", params.price_min)
    if params.price_max is not None:
        request = request.lte("price", params.price_max)
    # style and color are stored as JSON arrays; match on their text form
    if params.styles:
        request = request.or_ilike([("style", f"%{style}%") for style in params.styles])
    if params.colors:
        request = request.or_ilike([("color", f"%{color}%") for color in params.colors])
    return request


def query_listings(
    data: DataService,
    params: FilterParams,
    *,
    table_name: str = LISTINGS_TABLE,
    default_limit: int = DEFAULT_LIMIT,
) -> ListingPage:
    page = params.page or DEFAULT_PAGE
    limit = params.limit or default_limit
    if params.sort_by and params.sort_by not in SORTABLE_COLUMNS:
        raise ValueError(f"Cannot sort listings by {params.sort_by!r}")
    start = (page - 1) * limit

    request = apply_filters(data.table(table_name).select("*", count=True), params)
    if params.sort_by:
        direction = params.sort_direction or DEFAULT_SORT_DIRECTION
        request = request.order(params.sort_by, ascending=direction == "asc")
    else:
        request = request.order(DEFAULT_SORT_BY, ascending=False)
    result = request.range(start, start + limit - 1).execute()
    if result.error:
        raise StoreError(result.error)

    total = result.count or 0
    return ListingPage(
        listings=list(result.data or []),
        pagination=Pagination(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        ),
    )
