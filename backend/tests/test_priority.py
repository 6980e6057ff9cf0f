"""
Tests for priority normalization and the shared ticket comparator.
"""

import itertools
import pytest
from datetime import datetime

from queuedesk.models.queue import Ticket
from queuedesk.services.priority import (
    DEFAULT_PRIORITY,
    compare_tickets,
    normalize_priority_level,
    priority_or_default,
    to_timestamp,
)


def created(ticket: Ticket):
    return ticket.created_at


@pytest.mark.parametrize("raw, expected", [
    (3, 3),
    ("4", 4),
    (2.9, 2),
    (-4, 0),
    (99, 6),
    (None, None),
    (float("nan"), None),
    (float("inf"), None),
    (True, None),
    ("urgent", None),
])
def test_normalize_priority_level(raw, expected):
    assert normalize_priority_level(raw) == expected


def test_unusable_priority_falls_back_to_default():
    assert priority_or_default(None) == DEFAULT_PRIORITY
    assert priority_or_default("n/a") == DEFAULT_PRIORITY
    assert priority_or_default(5) == 5


def test_to_timestamp_uses_fallback_for_missing_values():
    assert to_timestamp(None) == 0.0
    assert to_timestamp(None, fallback=-1.0) == -1.0
    moment = datetime(2026, 10, 18, 10, 0)
    assert to_timestamp(moment) == moment.timestamp()


def test_higher_priority_wins_over_earlier_reference():
    early_low = Ticket(id=1, priority=1, created_at=datetime(2026, 10, 18, 9, 0))
    late_high = Ticket(id=2, priority=2, created_at=datetime(2026, 10, 18, 10, 0))

    assert compare_tickets(late_high, early_low, created) == -1
    assert compare_tickets(early_low, late_high, created) == 1


def test_equal_priority_orders_by_reference_then_id():
    first = Ticket(id=5, created_at=datetime(2026, 10, 18, 9, 0))
    second = Ticket(id=2, created_at=datetime(2026, 10, 18, 9, 30))
    twin = Ticket(id=9, created_at=datetime(2026, 10, 18, 9, 0))

    assert compare_tickets(first, second, created) == -1
    assert compare_tickets(first, twin, created) == -1
    assert compare_tickets(first, first, created) == 0


def test_missing_reference_sorts_as_oldest():
    undated = Ticket(id=10)
    dated = Ticket(id=1, created_at=datetime(2026, 10, 18, 9, 0))

    assert compare_tickets(undated, dated, created) == -1
    assert compare_tickets(undated, dated, created, newest_first=True) == 1


def test_comparator_is_a_total_order():
    tickets = [
        Ticket(id=1, priority=1, created_at=datetime(2026, 10, 18, 9, 0)),
        Ticket(id=2, priority=1, created_at=datetime(2026, 10, 18, 9, 0)),
        Ticket(id=3, priority=3, created_at=datetime(2026, 10, 18, 11, 0)),
        Ticket(id=4, priority=0),
        Ticket(id=5, priority=3, created_at=datetime(2026, 10, 18, 8, 0)),
    ]

    for a, b in itertools.permutations(tickets, 2):
        assert compare_tickets(a, b, created) == -compare_tickets(b, a, created)
        assert compare_tickets(a, b, created) != 0

    for a, b, c in itertools.permutations(tickets, 3):
        if compare_tickets(a, b, created) < 0 and compare_tickets(b, c, created) < 0:
            assert compare_tickets(a, c, created) < 0
