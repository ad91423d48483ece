"""
FastAPI application entry point for the filter service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vowswap.config import get_settings
from vowswap.errors import AuthenticationError, StoreError
from vowswap.routes import router

logger = logging.getLogger(__name__)


def _authentication_error(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc)})


def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Data service failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Data service error"})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="VowSwap Filter Service (FastAPI)", version="0.1.0")
    app.add_exception_handler(AuthenticationError, _authentication_error)
    app.add_exception_handler(StoreError, _store_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
