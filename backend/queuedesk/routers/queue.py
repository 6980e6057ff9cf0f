"""
Queue snapshot and wait-time API routes.
"""

from typing import List
from fastapi import APIRouter, HTTPException, status, Depends

from ..models.estimation import ClientType, HistoricalStat, PrecisionMetrics, WaitEstimate
from ..models.queue import CompletionRequest, QueueSnapshot, RawTicket
from ..services.queue_service import QueueService
from ..services.reconciler import TicketIdentityError
from .dependencies import get_queue_service

router = APIRouter(prefix="/queue", tags=["Queue"])


@router.get("/display", response_model=QueueSnapshot)
async def get_queue_display(service: QueueService = Depends(get_queue_service)):
    """Current snapshot for dashboard, signage and kiosk."""
    return service.snapshot


@router.post("/refresh", response_model=QueueSnapshot)
async def refresh_queue(service: QueueService = Depends(get_queue_service)):
    """Rebuild the snapshot from the ticket store."""
    return await service.refresh()


@router.post("/events", response_model=QueueSnapshot)
async def apply_ticket_event(
    ticket: RawTicket,
    service: QueueService = Depends(get_queue_service)
):
    """Apply one ticket status change to the snapshot."""
    try:
        return await service.handle_ticket_event(ticket)
    except TicketIdentityError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )


@router.post("/completions", response_model=HistoricalStat, status_code=status.HTTP_201_CREATED)
async def record_completion(
    request: CompletionRequest,
    service: QueueService = Depends(get_queue_service)
):
    """Feed a completed attention into the learning model."""
    try:
        return await service.record_completion(
            request.service_id,
            request.actual_minutes,
            request.operator_id,
            request.completed_at
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.get("/estimates", response_model=List[WaitEstimate])
async def list_wait_estimates(service: QueueService = Depends(get_queue_service)):
    """Estimated wait for every waiting ticket."""
    return await service.estimates()


@router.get("/tickets/{ticket_id}/estimate", response_model=WaitEstimate)
async def get_ticket_estimate(
    ticket_id: int,
    service: QueueService = Depends(get_queue_service)
):
    """Estimated wait for one waiting ticket (mobile tracker)."""
    estimate = await service.estimate_for_ticket(ticket_id)
    if not estimate:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket not waiting in queue"
        )
    return estimate


@router.get("/services/{service_id}/estimate", response_model=WaitEstimate)
async def get_service_estimate(
    service_id: int,
    client_type: ClientType = ClientType.REGULAR,
    service: QueueService = Depends(get_queue_service)
):
    """Estimated wait for a ticket drawn now (kiosk)."""
    return await service.estimate_for_service(service_id, client_type)


@router.get("/services/{service_id}/precision", response_model=PrecisionMetrics)
async def get_service_precision(
    service_id: int,
    service: QueueService = Depends(get_queue_service)
):
    """How reliable the learned estimates are for a service."""
    return service.precision_metrics(service_id)
