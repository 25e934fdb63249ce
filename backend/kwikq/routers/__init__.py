"""API routers for KwikQ."""

from .queue import router as queue_router
from .analytics import router as analytics_router

__all__ = [
    "queue_router",
    "analytics_router",
]
