"""
Priority normalization and the ticket ordering shared by every bucket sorter.
"""

import math
from datetime import datetime
from typing import Any, Callable, Optional

from ..models.queue import Ticket

PRIORITY_MIN = 0
PRIORITY_MAX = 6
DEFAULT_PRIORITY = 0

# Missing timestamps sort as the oldest possible value
OLDEST_TIMESTAMP = 0.0

ReferenceExtractor = Callable[[Ticket], Optional[datetime]]


def normalize_priority_level(raw: Any) -> Optional[int]:
    """Truncate and clamp a priority into [PRIORITY_MIN, PRIORITY_MAX]; None when unusable."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        numeric = float(raw)
    else:
        try:
            numeric = float(str(raw).strip())
        except ValueError:
            return None
    if not math.isfinite(numeric):
        return None
    value = int(numeric)
    return max(PRIORITY_MIN, min(PRIORITY_MAX, value))


def priority_or_default(raw: Any) -> int:
    normalized = normalize_priority_level(raw)
    return DEFAULT_PRIORITY if normalized is None else normalized


def to_timestamp(value: Optional[datetime], fallback: float = OLDEST_TIMESTAMP) -> float:
    """Epoch seconds of a datetime, or the fallback when missing or broken."""
    if value is None:
        return fallback
    try:
        stamp = value.timestamp()
    except (AttributeError, OverflowError, OSError, ValueError):
        return fallback
    return stamp if math.isfinite(stamp) else fallback


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def compare_tickets(
    a: Ticket,
    b: Ticket,
    reference: ReferenceExtractor,
    by_priority: bool = True,
    newest_first: bool = False,
) -> int:
    """
    Total order over (priority, reference timestamp, id).

    Priority descending when `by_priority` is set, then the reference
    timestamp ascending (descending with `newest_first`), then id ascending.
    Returns -1, 0 or 1.
    """
    if by_priority:
        diff = priority_or_default(b.priority) - priority_or_default(a.priority)
        if diff:
            return _sign(diff)

    a_ref = to_timestamp(reference(a))
    b_ref = to_timestamp(reference(b))
    diff = b_ref - a_ref if newest_first else a_ref - b_ref
    if diff:
        return _sign(diff)

    return _sign(a.id - b.id)


def ticket_comparator(
    reference: ReferenceExtractor,
    by_priority: bool = True,
    newest_first: bool = False,
) -> Callable[[Ticket, Ticket], int]:
    """Bind a reference extractor so the comparator can feed functools.cmp_to_key."""
    def compare(a: Ticket, b: Ticket) -> int:
        return compare_tickets(a, b, reference, by_priority=by_priority, newest_first=newest_first)
    return compare
