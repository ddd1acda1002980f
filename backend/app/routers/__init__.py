"""Routers package."""

from .health import router as health_router
from .sheets import router as sheets_router

__all__ = [
    "health_router",
    "sheets_router",
]
