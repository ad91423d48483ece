"""
VowSwap filter service.

This package provides the listing filter model, the per-user saved filter
store and a FastAPI application exposing both, with pluggable data, auth and
analytics backends so the service can run against Postgres or in memory.
"""
