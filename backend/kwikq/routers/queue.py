"""
Queue ticket API routes.
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, status, Depends

from ..models.metrics import (
    ActivityEntry,
    MetricsWindow,
    MetricsWindowKind,
    QueueHistory,
    QueueOverview,
)
from ..models.ticket import AlertResult, Ticket, TicketCreate
from ..services.queue_service import QueueService
from .dependencies import get_queue_service, window_params

router = APIRouter(prefix="/queue", tags=["Queue & Tickets"])


@router.post(
    "/businesses/{business_id}/tickets",
    response_model=Ticket,
    response_model_by_alias=False,
    status_code=status.HTTP_201_CREATED,
)
async def join_queue(
    business_id: str,
    request: TicketCreate,
    service: QueueService = Depends(get_queue_service),
):
    """Issue a new ticket for a customer joining the queue."""
    return await service.enqueue(business_id, request)


@router.get("/businesses/{business_id}/next", response_model=Ticket, response_model_by_alias=False)
async def next_in_line(
    business_id: str,
    queue_point_id: Optional[str] = None,
    service: QueueService = Depends(get_queue_service),
):
    """Next waiting ticket by priority and arrival."""
    ticket = await service.next_in_line(business_id, queue_point_id)
    if not ticket:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No customers waiting in queue"
        )
    return ticket


@router.get("/businesses/{business_id}/overview", response_model=QueueOverview)
async def queue_overview(business_id: str, service: QueueService = Depends(get_queue_service)):
    """Waiting counts per queue point."""
    return await service.queue_overview(business_id)


@router.get(
    "/businesses/{business_id}/active", response_model=List[Ticket], response_model_by_alias=False
)
async def active_queue(business_id: str, service: QueueService = Depends(get_queue_service)):
    """Customers waiting or being served, oldest first, with their wait so far."""
    return await service.active_queue(business_id)


@router.get(
    "/businesses/{business_id}/history", response_model=QueueHistory, response_model_by_alias=False
)
async def queue_history(
    business_id: str,
    window: MetricsWindow = Depends(window_params(MetricsWindowKind.TODAY)),
    service: QueueService = Depends(get_queue_service),
):
    """All tickets that joined in the window, with completion and wait figures."""
    return await service.queue_history(business_id, window)


@router.get("/businesses/{business_id}/activity", response_model=List[ActivityEntry])
async def recent_activity(business_id: str, service: QueueService = Depends(get_queue_service)):
    return await service.recent_activity(business_id)


@router.get("/tickets/{ticket_id}", response_model=Ticket, response_model_by_alias=False)
async def get_ticket(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    return await service.get_ticket(ticket_id)


@router.post("/tickets/{ticket_id}/serve", response_model=Ticket, response_model_by_alias=False)
async def serve_ticket(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    """Start serving a waiting or alerted customer."""
    return await service.serve(ticket_id)


@router.post("/tickets/{ticket_id}/complete", response_model=Ticket, response_model_by_alias=False)
async def complete_ticket(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    """Finish serving a customer."""
    return await service.complete(ticket_id)


@router.post("/tickets/{ticket_id}/cancel", response_model=Ticket, response_model_by_alias=False)
async def cancel_ticket(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    return await service.cancel(ticket_id)


@router.post("/tickets/{ticket_id}/skip", response_model=Ticket, response_model_by_alias=False)
async def skip_ticket(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    return await service.skip(ticket_id)


@router.post("/tickets/{ticket_id}/no-show", response_model=Ticket, response_model_by_alias=False)
async def mark_no_show(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    return await service.mark_no_show(ticket_id)


@router.post("/tickets/{ticket_id}/alert", response_model=AlertResult, response_model_by_alias=False)
async def alert_customer(ticket_id: str, service: QueueService = Depends(get_queue_service)):
    """Tell a customer it is their turn."""
    return await service.alert(ticket_id)
