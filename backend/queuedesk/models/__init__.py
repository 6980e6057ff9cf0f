"""Pydantic models for QueueDesk."""

from .queue import (
    ACTIVE_STATUSES,
    CompletionRequest,
    QueueSnapshot,
    RawTicket,
    Ticket,
    TicketStatus,
)
from .service import Service, Operator
from .estimation import (
    ClientType,
    HistoricalStat,
    OptimizationFactors,
    PrecisionMetrics,
    WaitEstimate,
)

__all__ = [
    # Queue
    "ACTIVE_STATUSES", "CompletionRequest", "QueueSnapshot", "RawTicket",
    "Ticket", "TicketStatus",
    # Services and operators
    "Service", "Operator",
    # Estimation
    "ClientType", "HistoricalStat", "OptimizationFactors", "PrecisionMetrics", "WaitEstimate",
]
