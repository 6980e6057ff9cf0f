"""
Ticket and queue snapshot models.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Any, Optional, Tuple
from datetime import datetime
from enum import Enum


class TicketStatus(str, Enum):
    """Ticket lifecycle states."""
    WAITING = "WAITING"
    CALLED = "CALLED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ABSENT = "ABSENT"


# Statuses a ticket can hold while it is still the focus of a counter
ACTIVE_STATUSES = frozenset({
    TicketStatus.IN_PROGRESS,
    TicketStatus.CALLED,
    TicketStatus.WAITING,
})


class RawTicket(BaseModel):
    """
    Loosely-typed ticket record as handed over by the store, the API or the
    local demo state. Accepts camelCase and snake_case keys; nothing is
    validated here, the sanitizer decides what every field means.
    """
    id: Any = None
    number: Any = None
    status: Any = None
    priority: Any = None
    service_id: Any = None
    operator_id: Any = None
    client_id: Any = None
    created_at: Any = None
    called_at: Any = None
    started_at: Any = None
    start_of_service_time: Any = None
    completed_at: Any = None
    requeued_at: Any = None
    absent_at: Any = None
    estimated_wait_time: Any = None
    service: Any = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"


class Ticket(BaseModel):
    """Canonical ticket produced by the sanitizer."""
    id: int
    number: Optional[str] = None
    service_id: Optional[int] = None
    operator_id: Optional[int] = None
    client_id: Optional[int] = None
    status: TicketStatus = TicketStatus.WAITING
    priority: int = 0
    created_at: Optional[datetime] = None
    called_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    service_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    requeued_at: Optional[datetime] = None
    absent_at: Optional[datetime] = None
    estimated_wait_time: Optional[int] = None

    class Config:
        frozen = True

    @property
    def service_start(self) -> Optional[datetime]:
        """When attention actually began, if known."""
        return self.service_started_at or self.started_at

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class QueueSnapshot(BaseModel):
    """Reconciled, ordered view of every bucket plus the current ticket."""
    in_progress: Tuple[Ticket, ...] = ()
    called: Tuple[Ticket, ...] = ()
    waiting: Tuple[Ticket, ...] = ()
    absent: Tuple[Ticket, ...] = ()
    recently_completed: Tuple[Ticket, ...] = ()
    current_ticket: Optional[Ticket] = None
    next_tickets: Tuple[Ticket, ...] = ()

    class Config:
        frozen = True

    def buckets(self) -> Tuple[Tuple[Ticket, ...], ...]:
        return (
            self.in_progress,
            self.called,
            self.waiting,
            self.absent,
            self.recently_completed,
        )

    def ticket_ids(self) -> set:
        return {ticket.id for bucket in self.buckets() for ticket in bucket}

    def find(self, ticket_id: int) -> Optional[Ticket]:
        """Look a ticket up across all buckets."""
        for bucket in self.buckets():
            for ticket in bucket:
                if ticket.id == ticket_id:
                    return ticket
        return None


class CompletionRequest(BaseModel):
    """Completed attention reported for the learning model."""
    service_id: int
    actual_minutes: float
    operator_id: Optional[int] = None
    completed_at: Optional[datetime] = None
