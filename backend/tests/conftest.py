import pytest
from datetime import datetime, timedelta

from queuedesk.models.service import Operator, Service
from queuedesk.services.stats_store import HistoricalStatStore
from queuedesk.services.ticket_store import InMemoryQueueStore
from queuedesk.services.time_estimation import WaitTimeEstimator

# Fixed local reference time for every test
NOW = datetime(2026, 10, 18, 10, 30)


def at(hhmm: str, days_ago: int = 0) -> str:
    """ISO timestamp for HH:MM on NOW's day (or `days_ago` days before)."""
    hour, minute = (int(part) for part in hhmm.split(":"))
    moment = NOW.replace(hour=hour, minute=minute) - timedelta(days=days_ago)
    return moment.isoformat()


def raw_ticket(ticket_id, status="WAITING", priority=0, created="09:00", service_id=1, **extra):
    """Raw ticket record shaped like the API payloads (camelCase keys)."""
    record = {
        "id": ticket_id,
        "status": status,
        "priority": priority,
        "serviceId": service_id,
        "createdAt": at(created),
    }
    record.update(extra)
    return record


class StubRandom:
    """Random source returning a fixed value."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def spec_tickets():
    """T1 waiting prio 1 at 10:00, T2 waiting prio 2 at 10:05, T3 in progress since 09:58."""
    return [
        raw_ticket(1, "WAITING", priority=1, created="10:00"),
        raw_ticket(2, "WAITING", priority=2, created="10:05"),
        raw_ticket(3, "IN_PROGRESS", created="09:50", calledAt=at("09:55"), startedAt=at("09:58")),
    ]


@pytest.fixture
def stat_store():
    return HistoricalStatStore()


@pytest.fixture
def estimator(stat_store):
    return WaitTimeEstimator(stat_store, rng=StubRandom(0.5))


@pytest.fixture
def queue_store(spec_tickets):
    return InMemoryQueueStore(
        tickets=spec_tickets,
        services=[Service(id=1, name="Cashier", prefix="C", estimated_time=10)],
        operators=[
            Operator(id=7, name="Ana", service_ids=[1]),
            Operator(id=8, name="Luis", active=False, service_ids=[1]),
        ],
    )
