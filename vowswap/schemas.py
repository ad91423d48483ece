"""
Pydantic schemas for the filter service API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from vowswap.filter_usage import FilterUsageReport
from vowswap.filters import FilterParams, FilterState
from vowswap.listings import ListingPage
from vowswap.saved_filters import SavedFilter

WeddingCategory = Literal["dress", "decor", "accessories", "stationery", "gifts"]
ItemCondition = Literal[
    "new_with_tags",
    "new_without_tags",
    "like_new",
    "gently_used",
    "visible_wear",
]


class FilterParamsModel(BaseModel):
    search: Optional[str] = None
    categories: Optional[list[WeddingCategory]] = None
    conditions: Optional[list[ItemCondition]] = None
    priceMin: Optional[int | float] = Field(default=None, ge=0)
    priceMax: Optional[int | float] = Field(default=None, ge=0)
    styles: Optional[list[str]] = None
    colors: Optional[list[str]] = None
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1)
    sortBy: Optional[str] = None
    sortDirection: Optional[Literal["asc", "desc"]] = None

    def to_params(self) -> FilterParams:
        return FilterParams.from_dict(self.model_dump(exclude_none=True))


class SaveFilterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    filterData: FilterParamsModel = Field(default_factory=FilterParamsModel)


class UpdateFilterRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    filterData: Optional[FilterParamsModel] = None


class SavedFilterResponse(BaseModel):
    id: str
    userId: str
    name: str
    filterData: dict
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_record(cls, record: SavedFilter) -> "SavedFilterResponse":
        return cls(
            id=record.id,
            userId=record.user_id,
            name=record.name,
            filterData=record.filter_data.to_dict(),
            createdAt=record.created_at,
            updatedAt=record.updated_at,
        )


class SavedFilterListResponse(BaseModel):
    filters: list[SavedFilterResponse]


class FilterStateResponse(BaseModel):
    filterState: dict
    filterParams: dict

    @classmethod
    def from_state(cls, state: FilterState, params: FilterParams) -> "FilterStateResponse":
        return cls(filterState=state.to_dict(), filterParams=params.to_dict())


class PaginationModel(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class ListingsResponse(BaseModel):
    listings: list[dict]
    pagination: PaginationModel

    @classmethod
    def from_page(cls, page: ListingPage) -> "ListingsResponse":
        return cls(
            listings=page.listings,
            pagination=PaginationModel(**page.pagination.as_dict()),
        )


class FilterCountModel(BaseModel):
    filterType: str
    count: int


class DailyFilterCountModel(BaseModel):
    date: str
    filterType: str
    count: int


class FilterRemovalModel(BaseModel):
    filterType: str
    appliedCount: int
    removedCount: int
    ratio: float


class FilterUsageResponse(BaseModel):
    mostUsedFilters: list[FilterCountModel]
    filterUsageOverTime: list[DailyFilterCountModel]
    filterRemovalMetrics: list[FilterRemovalModel]

    @classmethod
    def from_report(cls, report: FilterUsageReport) -> "FilterUsageResponse":
        return cls(**report.as_dict())


ClientEventType = Literal[
    "search",
    "filter_apply",
    "filter_remove",
    "filter_clear",
    "listing_view",
    "listing_click",
]


class AnalyticsEventRequest(BaseModel):
    """An interaction reported by the marketplace client."""

    eventType: ClientEventType
    searchQuery: Optional[str] = None
    filterType: Optional[str] = None
    filterValue: Optional[str | int | float | bool | list[str]] = None
    listingId: Optional[str] = None
    metadata: Optional[dict] = None

    @model_validator(mode="after")
    def check_required_fields(self) -> "AnalyticsEventRequest":
        required = {
            "search": "searchQuery",
            "filter_apply": "filterType",
            "filter_remove": "filterType",
            "listing_view": "listingId",
            "listing_click": "listingId",
        }.get(self.eventType)
        if required and not getattr(self, required):
            raise ValueError(f"{required} is required for {self.eventType} events")
        return self
