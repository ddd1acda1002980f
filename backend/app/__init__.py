"""FastAPI application package for the spreadsheet ingestion backend."""

from __future__ import annotations


def get_app():
    """Return the FastAPI application without importing it eagerly.

    Alembic and the CLI jobs import ``backend.app`` subpackages without
    needing the routers.
    """

    from .main import app as fastapi_app

    return fastapi_app


__all__ = ["get_app"]
