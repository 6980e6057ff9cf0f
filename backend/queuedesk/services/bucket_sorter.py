"""
Ordering rules for each status bucket.

Every sorter returns a new tuple and leaves its input untouched.
"""

from functools import cmp_to_key
from typing import Dict, Callable, Iterable, Optional, Tuple
from datetime import datetime

from ..models.queue import Ticket, TicketStatus
from .priority import ticket_comparator

TicketBucket = Tuple[Ticket, ...]


def in_progress_reference(ticket: Ticket) -> Optional[datetime]:
    return ticket.started_at or ticket.called_at or ticket.created_at


def called_reference(ticket: Ticket) -> Optional[datetime]:
    return ticket.called_at or ticket.created_at


def waiting_reference(ticket: Ticket) -> Optional[datetime]:
    # A requeued ticket restarts its wait from the requeue moment
    return ticket.requeued_at or ticket.created_at


def absent_reference(ticket: Ticket) -> Optional[datetime]:
    return ticket.absent_at or ticket.requeued_at or ticket.called_at or ticket.created_at


def completed_reference(ticket: Ticket) -> Optional[datetime]:
    return ticket.service_start


_in_progress_key = cmp_to_key(ticket_comparator(in_progress_reference, by_priority=False))
_called_key = cmp_to_key(ticket_comparator(called_reference, by_priority=False))
_waiting_key = cmp_to_key(ticket_comparator(waiting_reference))
_absent_key = cmp_to_key(ticket_comparator(absent_reference, by_priority=False, newest_first=True))
_completed_key = cmp_to_key(ticket_comparator(completed_reference, by_priority=False, newest_first=True))


def sort_in_progress(tickets: Iterable[Ticket]) -> TicketBucket:
    """Earliest service start first."""
    return tuple(sorted(tickets, key=_in_progress_key))


def sort_called(tickets: Iterable[Ticket]) -> TicketBucket:
    """Earliest call first."""
    return tuple(sorted(tickets, key=_called_key))


def sort_waiting(tickets: Iterable[Ticket]) -> TicketBucket:
    """Highest priority first, then first come first served."""
    return tuple(sorted(tickets, key=_waiting_key))


def sort_absent(tickets: Iterable[Ticket]) -> TicketBucket:
    """Most recently marked absent first."""
    return tuple(sorted(tickets, key=_absent_key))


def sort_recently_completed(tickets: Iterable[Ticket]) -> TicketBucket:
    """Most recent service start first."""
    return tuple(sorted(tickets, key=_completed_key))


SORTERS: Dict[TicketStatus, Callable[[Iterable[Ticket]], TicketBucket]] = {
    TicketStatus.IN_PROGRESS: sort_in_progress,
    TicketStatus.CALLED: sort_called,
    TicketStatus.WAITING: sort_waiting,
    TicketStatus.ABSENT: sort_absent,
    TicketStatus.COMPLETED: sort_recently_completed,
}
