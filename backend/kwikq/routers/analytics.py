"""
Analytics and dashboard API routes.
"""

from fastapi import APIRouter, Depends

from ..models.metrics import DashboardMetrics, MetricsReport, MetricsWindow, MetricsWindowKind
from ..services.queue_service import QueueService
from .dependencies import get_queue_service, window_params

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/businesses/{business_id}", response_model=MetricsReport)
async def get_metrics(
    business_id: str,
    window: MetricsWindow = Depends(window_params(MetricsWindowKind.LAST_7_DAYS)),
    service: QueueService = Depends(get_queue_service),
):
    """Wait-time, service-time and volume statistics."""
    return await service.get_metrics(business_id, window)


@router.get("/businesses/{business_id}/dashboard", response_model=DashboardMetrics)
async def get_dashboard(business_id: str, service: QueueService = Depends(get_queue_service)):
    """Today's active, wait-time and served figures versus yesterday."""
    return await service.dashboard(business_id)
