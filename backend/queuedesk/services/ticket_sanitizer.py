"""
Ticket sanitizer.

The only place that interprets loosely-shaped ticket records. Everything
downstream works on canonical `Ticket` values and never guesses at field
names. Dirty data is absorbed here: bad statuses fall back to WAITING,
unusable priorities to the default level, broken dates to None.
"""

import logging
import math
from collections.abc import Mapping
from datetime import date, datetime, time
from typing import Any, Optional, Union

from pydantic import TypeAdapter, ValidationError

from ..models.queue import RawTicket, Ticket, TicketStatus
from .priority import priority_or_default

logger = logging.getLogger(__name__)

_datetime_adapter = TypeAdapter(datetime)

TicketLike = Union[Ticket, RawTicket, Mapping, Any]


def normalize_status(raw: Any) -> Optional[TicketStatus]:
    """Map a status value onto the closed enum, or None when unrecognized."""
    if raw is None:
        return None
    if isinstance(raw, TicketStatus):
        return raw
    candidate = str(raw).strip().upper()
    if not candidate:
        return None
    try:
        return TicketStatus(candidate)
    except ValueError:
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings, epoch numbers and date values; None when invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        return _datetime_adapter.validate_python(value)
    except (ValidationError, ValueError, OverflowError, TypeError):
        return None


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        numeric = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(numeric) or not numeric.is_integer():
        return None
    return int(numeric)


def _nested_id(value: Any) -> Any:
    if isinstance(value, Mapping):
        return value.get("id")
    return getattr(value, "id", None)


def _coerce_raw(record: Any) -> Optional[RawTicket]:
    if isinstance(record, RawTicket):
        return record
    try:
        if isinstance(record, Mapping):
            return RawTicket.model_validate(dict(record))
        return RawTicket.model_validate(record, from_attributes=True)
    except ValidationError:
        return None


def _resolve_status(raw: RawTicket, ticket_id: int) -> TicketStatus:
    status = normalize_status(raw.status)
    if status is not None:
        return status
    if raw.status is None or not str(raw.status).strip():
        logger.debug("Ticket %s has no status, treating it as WAITING", ticket_id)
    else:
        logger.warning(
            "Ticket %s has unrecognized status %r, falling back to WAITING",
            ticket_id,
            raw.status,
        )
    return TicketStatus.WAITING


def sanitize_ticket(record: TicketLike) -> Optional[Ticket]:
    """
    Normalize one raw ticket record into a canonical Ticket.

    Returns None only when no integer id can be resolved. Never raises.
    """
    if record is None:
        return None
    if isinstance(record, Ticket):
        return record

    raw = _coerce_raw(record)
    if raw is None:
        return None

    ticket_id = _to_int(raw.id)
    if ticket_id is None:
        logger.debug("Dropping ticket record without a usable id: %r", raw.id)
        return None

    service_id = raw.service_id if raw.service_id is not None else _nested_id(raw.service)
    wait = _to_int(raw.estimated_wait_time)

    return Ticket(
        id=ticket_id,
        number=str(raw.number) if raw.number is not None else None,
        service_id=_to_int(service_id),
        operator_id=_to_int(raw.operator_id),
        client_id=_to_int(raw.client_id),
        status=_resolve_status(raw, ticket_id),
        priority=priority_or_default(raw.priority),
        created_at=parse_datetime(raw.created_at),
        called_at=parse_datetime(raw.called_at),
        started_at=parse_datetime(raw.started_at),
        service_started_at=parse_datetime(raw.start_of_service_time),
        completed_at=parse_datetime(raw.completed_at),
        requeued_at=parse_datetime(raw.requeued_at),
        absent_at=parse_datetime(raw.absent_at),
        estimated_wait_time=wait if wait is not None and wait >= 0 else None,
    )
