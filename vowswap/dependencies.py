"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header

from vowswap.analytics import AnalyticsClient, InMemoryAnalyticsClient, TableAnalyticsClient
from vowswap.auth import AuthClient, StaticAuthClient
from vowswap.config import get_settings
from vowswap.data_service import DataService, InMemoryDataService, SqlDataService
from vowswap.saved_filters import SavedFiltersService

logger = logging.getLogger(__name__)

_data_service: DataService | None = None
_analytics_client: AnalyticsClient | None = None


def get_data_service() -> DataService:
    """
    Return a singleton data service so stored state persists across requests.
    """
    global _data_service
    if _data_service:
        return _data_service

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory data service")
        _data_service = InMemoryDataService()
    else:
        _data_service = SqlDataService(settings.database_url)
    return _data_service


def get_analytics_client() -> AnalyticsClient:
    global _analytics_client
    if _analytics_client:
        return _analytics_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _analytics_client = InMemoryAnalyticsClient()
    else:
        _analytics_client = TableAnalyticsClient(
            get_data_service(), max_queue_size=settings.analytics_max_queue_size
        )
    return _analytics_client


def get_auth_client(x_user_id: Optional[str] = Header(default=None)) -> AuthClient:
    """Build a request-scoped auth client from the ``X-User-Id`` header."""
    return StaticAuthClient(user_id=x_user_id)


def get_saved_filters_service(
    data: DataService = Depends(get_data_service),
    auth: AuthClient = Depends(get_auth_client),
    analytics: AnalyticsClient = Depends(get_analytics_client),
) -> SavedFiltersService:
    return SavedFiltersService(data, auth, analytics)
