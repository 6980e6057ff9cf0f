"""
Incremental reconciliation: patch one ticket into an existing snapshot.
"""

from datetime import datetime
from typing import Iterable, Optional

from ..models.queue import ACTIVE_STATUSES, QueueSnapshot, Ticket, TicketStatus
from .bucket_sorter import TicketBucket, sort_absent, sort_called, sort_in_progress, sort_waiting
from .snapshot_builder import assemble_snapshot, filter_recently_completed
from .ticket_sanitizer import TicketLike, sanitize_ticket


class TicketIdentityError(ValueError):
    """Raised when an update cannot be tied to a ticket id."""


def _without(bucket: TicketBucket, ticket_id: int) -> TicketBucket:
    return tuple(ticket for ticket in bucket if ticket.id != ticket_id)


def apply_update(
    snapshot: QueueSnapshot,
    updated_ticket: TicketLike,
    now: Optional[datetime] = None,
) -> QueueSnapshot:
    """
    Move a single ticket to the bucket of its new status.

    Only the destination bucket is re-sorted. Applying the same ticket
    state twice yields the same snapshot.

    Raises:
        TicketIdentityError: the update is empty or carries no usable id.
    """
    ticket = sanitize_ticket(updated_ticket)
    if ticket is None:
        raise TicketIdentityError("Ticket update has no usable id")

    in_progress = _without(snapshot.in_progress, ticket.id)
    called = _without(snapshot.called, ticket.id)
    waiting = _without(snapshot.waiting, ticket.id)
    absent = _without(snapshot.absent, ticket.id)
    completed = _without(snapshot.recently_completed, ticket.id)

    if ticket.status == TicketStatus.IN_PROGRESS:
        in_progress = sort_in_progress((*in_progress, ticket))
    elif ticket.status == TicketStatus.CALLED:
        called = sort_called((*called, ticket))
    elif ticket.status == TicketStatus.WAITING:
        waiting = sort_waiting((*waiting, ticket))
    elif ticket.status == TicketStatus.ABSENT:
        absent = sort_absent((*absent, ticket))
    elif ticket.status == TicketStatus.COMPLETED:
        completed = filter_recently_completed((*completed, ticket), now)

    # A ticket leaving these statuses must not linger in their buckets
    if ticket.status != TicketStatus.COMPLETED:
        completed = _without(completed, ticket.id)
    if ticket.status != TicketStatus.ABSENT:
        absent = _without(absent, ticket.id)

    current: Optional[Ticket] = snapshot.current_ticket
    if current is not None and current.id == ticket.id:
        current = ticket if ticket.status in ACTIVE_STATUSES else None
    if current is None and ticket.status == TicketStatus.IN_PROGRESS:
        current = ticket

    return assemble_snapshot(in_progress, called, waiting, absent, completed, current)


def apply_updates(
    snapshot: QueueSnapshot,
    updated_tickets: Iterable[TicketLike],
    now: Optional[datetime] = None,
) -> QueueSnapshot:
    """Fold a batch of updates in delivery order."""
    for updated in updated_tickets:
        snapshot = apply_update(snapshot, updated, now)
    return snapshot
