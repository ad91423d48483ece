"""
Error taxonomy shared by the saved filter store and the HTTP layer.
"""

from __future__ import annotations

from typing import Optional


class FilterServiceError(Exception):
    """Base class for service errors."""


class AuthenticationError(FilterServiceError):
    """Raised when there is no authenticated session."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class NotFoundError(FilterServiceError):
    """Raised when a record is absent or not owned by the caller."""


class StoreError(FilterServiceError):
    """Raised when the data service reports a failure."""

    def __init__(self, message: str, cause: Optional[object] = None):
        super().__init__(message)
        self.cause = cause
