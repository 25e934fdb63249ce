"""
Service wiring for the routers.
"""

from datetime import datetime
from typing import Optional
from fastapi import HTTPException, Request, status
from pydantic import ValidationError

from ..models.metrics import MetricsWindow, MetricsWindowKind
from ..services.queue_service import QueueService


def get_queue_service(request: Request) -> QueueService:
    """FastAPI dependency returning the service built at startup."""
    return request.app.state.queue_service


def window_params(default: MetricsWindowKind):
    """Dependency reading ``window``/``start``/``end`` query parameters."""

    def _window(
        window: MetricsWindowKind = default,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> MetricsWindow:
        try:
            return MetricsWindow(kind=window, start=start, end=end)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=[err["msg"] for err in e.errors()]
            )

    return _window
