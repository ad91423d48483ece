"""
HTTP routes for the filter service API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from vowswap.analytics import (
    AnalyticsClient,
    AnalyticsEventType,
    track_filter_apply,
    track_filter_clear,
    track_filter_remove,
    track_listing_click,
    track_listing_view,
    track_search,
)
from vowswap.auth import AuthClient
from vowswap.config import get_settings
from vowswap.data_service import DataService
from vowswap.dependencies import (
    get_analytics_client,
    get_auth_client,
    get_data_service,
    get_saved_filters_service,
)
from vowswap.filter_usage import filter_usage_report
from vowswap.filters import (
    FilterParams,
    filter_params_to_state,
    filter_state_to_params,
)
from vowswap.listings import SORTABLE_COLUMNS, query_listings
from vowswap.saved_filters import SavedFiltersService
from vowswap.schemas import (
    AnalyticsEventRequest,
    FilterParamsModel,
    FilterStateResponse,
    FilterUsageResponse,
    ListingsResponse,
    SavedFilterListResponse,
    SavedFilterResponse,
    SaveFilterRequest,
    UpdateFilterRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_filter_query(request: Request) -> FilterParams:
    try:
        params = FilterParams.from_query(request.query_params)
        FilterParamsModel(**params.to_dict())
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid filter parameter: {exc}") from exc
    return params


@router.get("/saved-filters", response_model=SavedFilterListResponse)
def list_saved_filters(
    service: SavedFiltersService = Depends(get_saved_filters_service),
):
    records = service.get_saved_filters()
    return SavedFilterListResponse(
        filters=[SavedFilterResponse.from_record(r) for r in records]
    )


@router.post("/saved-filters", response_model=SavedFilterResponse, status_code=201)
def save_filter(
    payload: SaveFilterRequest,
    service: SavedFiltersService = Depends(get_saved_filters_service),
):
    record = service.save_filter(payload.name, payload.filterData.to_params())
    return SavedFilterResponse.from_record(record)


@router.get("/saved-filters/{filter_id}", response_model=SavedFilterResponse)
def get_saved_filter(
    filter_id: str,
    service: SavedFiltersService = Depends(get_saved_filters_service),
):
    record = service.get_saved_filter_by_id(filter_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Saved filter not found")
    return SavedFilterResponse.from_record(record)


@router.patch("/saved-filters/{filter_id}", response_model=SavedFilterResponse)
def update_saved_filter(
    filter_id: str,
    payload: UpdateFilterRequest,
    service: SavedFiltersService = Depends(get_saved_filters_service),
):
    updates = {}
    if payload.name is not None:
        updates["name"] = payload.name
    if payload.filterData is not None:
        updates["filter_data"] = payload.filterData.to_params()
    record = service.update_saved_filter(filter_id, updates)
    if record is None:
        raise HTTPException(status_code=404, detail="Saved filter not found")
    return SavedFilterResponse.from_record(record)


@router.delete("/saved-filters/{filter_id}", status_code=204)
def delete_saved_filter(
    filter_id: str,
    service: SavedFiltersService = Depends(get_saved_filters_service),
):
    if not service.delete_saved_filter(filter_id):
        raise HTTPException(status_code=404, detail="Saved filter not found")
    return Response(status_code=204)


@router.post("/saved-filters/{filter_id}/apply", response_model=FilterStateResponse)
def apply_saved_filter(
    filter_id: str,
    service: SavedFiltersService = Depends(get_saved_filters_service),
):
    params = service.apply_saved_filter(filter_id)
    if params is None:
        raise HTTPException(status_code=404, detail="Saved filter not found")
    return FilterStateResponse.from_state(filter_params_to_state(params), params)


@router.get("/filters/state", response_model=FilterStateResponse)
def normalize_filters(request: Request):
    """
    Normalize query-string filters into UI state plus their canonical params.
    """
    state = filter_params_to_state(_parse_filter_query(request))
    return FilterStateResponse.from_state(state, filter_state_to_params(state))


@router.get("/listings/filter", response_model=ListingsResponse)
def filter_listings(request: Request, data: DataService = Depends(get_data_service)):
    settings = get_settings()
    params = _parse_filter_query(request)
    if params.limit is not None and params.limit > settings.max_page_limit:
        raise HTTPException(
            status_code=422,
            detail=f"limit must not exceed {settings.max_page_limit}",
        )
    if params.sort_by is not None and params.sort_by not in SORTABLE_COLUMNS:
        raise HTTPException(
            status_code=422,
            detail=f"sortBy must be one of {', '.join(SORTABLE_COLUMNS)}",
        )
    page = query_listings(data, params, default_limit=settings.default_page_limit)
    return ListingsResponse.from_page(page)


@router.post("/analytics/events", status_code=202)
def record_analytics_event(
    payload: AnalyticsEventRequest,
    analytics: AnalyticsClient = Depends(get_analytics_client),
    auth: AuthClient = Depends(get_auth_client),
):
    session = auth.get_session()
    user_id = session.user_id if session else None
    event_type = AnalyticsEventType(payload.eventType)
    if event_type is AnalyticsEventType.SEARCH:
        track_search(analytics, payload.searchQuery, user_id=user_id)
    elif event_type is AnalyticsEventType.FILTER_APPLY:
        track_filter_apply(analytics, payload.filterType, payload.filterValue, user_id=user_id)
    elif event_type is AnalyticsEventType.FILTER_REMOVE:
        track_filter_remove(analytics, payload.filterType, payload.filterValue, user_id=user_id)
    elif event_type is AnalyticsEventType.FILTER_CLEAR:
        track_filter_clear(analytics, user_id=user_id)
    elif event_type is AnalyticsEventType.LISTING_VIEW:
        track_listing_view(analytics, payload.listingId, user_id=user_id)
    else:
        track_listing_click(analytics, payload.listingId, payload.metadata, user_id=user_id)
    return {"status": "accepted"}


@router.get("/analytics/filter-usage", response_model=FilterUsageResponse)
def get_filter_usage(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    data: DataService = Depends(get_data_service),
):
    settings = get_settings()
    report = filter_usage_report(
        data,
        limit=limit or settings.usage_report_limit,
        start=startDate,
        end=endDate,
    )
    return FilterUsageResponse.from_report(report)
