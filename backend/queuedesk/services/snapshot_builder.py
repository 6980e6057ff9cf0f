"""
Full-rebuild reconciliation of the queue snapshot.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from ..models.queue import ACTIVE_STATUSES, QueueSnapshot, Ticket, TicketStatus
from .bucket_sorter import (
    TicketBucket,
    sort_absent,
    sort_called,
    sort_in_progress,
    sort_recently_completed,
    sort_waiting,
)
from .ticket_sanitizer import TicketLike, sanitize_ticket

RECENTLY_COMPLETED_LIMIT = 5


def local_day(value: datetime, reference: datetime) -> date:
    """Calendar day of `value` in the zone `reference` is expressed in (local time when naive)."""
    if value.tzinfo is None:
        return value.date()
    if reference.tzinfo is None:
        return value.astimezone().date()
    return value.astimezone(reference.tzinfo).date()


def dedupe_tickets(records: Iterable[TicketLike]) -> List[Ticket]:
    """Sanitize records, keeping the first occurrence of every id."""
    seen = set()
    result = []
    for record in records:
        ticket = sanitize_ticket(record)
        if ticket is None or ticket.id in seen:
            continue
        seen.add(ticket.id)
        result.append(ticket)
    return result


def filter_recently_completed(
    tickets: Iterable[Ticket],
    now: Optional[datetime] = None,
    limit: int = RECENTLY_COMPLETED_LIMIT,
) -> TicketBucket:
    """Completed tickets whose service started today, newest first, capped."""
    now = now or datetime.now()
    today = now.date()
    eligible = [
        ticket for ticket in tickets
        if ticket.status == TicketStatus.COMPLETED
        and ticket.service_start is not None
        and local_day(ticket.service_start, now) == today
    ]
    return sort_recently_completed(eligible)[:limit]


def resolve_current_ticket(
    candidate: Optional[Ticket],
    in_progress: TicketBucket,
    called: TicketBucket,
    waiting: TicketBucket,
) -> Optional[Ticket]:
    """
    Keep the candidate while it is still active in one of the active
    buckets, otherwise fall back to the earliest in-progress, called or
    waiting ticket, in that order.
    """
    if candidate is not None:
        for bucket in (in_progress, called, waiting):
            for ticket in bucket:
                if ticket.id == candidate.id and ticket.status in ACTIVE_STATUSES:
                    return ticket
    for bucket in (in_progress, called, waiting):
        if bucket:
            return bucket[0]
    return None


def aggregate_next_tickets(
    in_progress: TicketBucket,
    called: TicketBucket,
    waiting: TicketBucket,
    current: Optional[Ticket],
) -> TicketBucket:
    """Attend, then call, then wait order, without the current ticket."""
    seen = set()
    result = []
    for ticket in (*in_progress, *called, *waiting):
        if current is not None and ticket.id == current.id:
            continue
        if ticket.id in seen:
            continue
        seen.add(ticket.id)
        result.append(ticket)
    return tuple(result)


def assemble_snapshot(
    in_progress: TicketBucket,
    called: TicketBucket,
    waiting: TicketBucket,
    absent: TicketBucket,
    recently_completed: TicketBucket,
    current: Optional[Ticket],
) -> QueueSnapshot:
    current = resolve_current_ticket(current, in_progress, called, waiting)
    return QueueSnapshot(
        in_progress=in_progress,
        called=called,
        waiting=waiting,
        absent=absent,
        recently_completed=recently_completed,
        current_ticket=current,
        next_tickets=aggregate_next_tickets(in_progress, called, waiting, current),
    )


def build_snapshot(
    tickets: Iterable[TicketLike],
    current_ticket: Optional[TicketLike] = None,
    now: Optional[datetime] = None,
) -> QueueSnapshot:
    """
    Rebuild the whole snapshot from every currently relevant ticket.

    Args:
        tickets: Raw or canonical ticket records of any status.
        current_ticket: The ticket currently on screen, if any. It stays
            current only while the fresh data still has it active.
        now: Reference time for the "recently completed today" window.

    Returns:
        A new QueueSnapshot. Empty input gives an all-empty snapshot.
    """
    buckets: Dict[TicketStatus, List[Ticket]] = {status: [] for status in TicketStatus}
    for ticket in dedupe_tickets(tickets):
        buckets[ticket.status].append(ticket)

    in_progress = sort_in_progress(buckets[TicketStatus.IN_PROGRESS])
    called = sort_called(buckets[TicketStatus.CALLED])
    waiting = sort_waiting(buckets[TicketStatus.WAITING])
    absent = sort_absent(buckets[TicketStatus.ABSENT])
    completed = filter_recently_completed(buckets[TicketStatus.COMPLETED], now)

    return assemble_snapshot(
        in_progress,
        called,
        waiting,
        absent,
        completed,
        sanitize_ticket(current_ticket),
    )
