"""
Ticket, service and operator lookups consumed by the queue service.

Both stores hand out raw ticket records; sanitizing them is the snapshot
builder's job.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..database import Database
from ..models.queue import TicketStatus
from ..models.service import Operator, Service

_ACTIVE_VALUES = [
    TicketStatus.WAITING.value,
    TicketStatus.CALLED.value,
    TicketStatus.IN_PROGRESS.value,
]
_SETTLED_TODAY_VALUES = [
    TicketStatus.COMPLETED.value,
    TicketStatus.ABSENT.value,
]


def _with_id(doc: dict) -> dict:
    doc = dict(doc)
    mongo_id = doc.pop("_id", None)
    doc.setdefault("id", mongo_id)
    return doc


class MongoQueueStore:
    """MongoDB-backed lookups over the tickets, services and operators collections."""

    @classmethod
    async def fetch_tickets(cls, now: Optional[datetime] = None) -> List[dict]:
        """Active tickets plus today's completed and absent ones."""
        tickets = Database.get_collection("tickets")

        # Aware local midnight; Mongo stores UTC
        now = (now or datetime.now()).astimezone()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        cursor = tickets.find({
            "$or": [
                {"status": {"$in": _ACTIVE_VALUES}},
                {"status": {"$in": _SETTLED_TODAY_VALUES}, "created_at": {"$gte": today}},
            ]
        })

        result = []
        async for doc in cursor:
            result.append(_with_id(doc))
        return result

    @classmethod
    async def get_service(cls, service_id: int) -> Optional[Service]:
        services = Database.get_collection("services")
        doc = await services.find_one({"_id": service_id})
        return Service(**_with_id(doc)) if doc else None

    @classmethod
    async def list_services(cls) -> List[Service]:
        services = Database.get_collection("services")
        return [Service(**_with_id(doc)) async for doc in services.find({"active": True})]

    @classmethod
    async def get_operator(cls, operator_id: int) -> Optional[Operator]:
        operators = Database.get_collection("operators")
        doc = await operators.find_one({"_id": operator_id})
        return Operator(**_with_id(doc)) if doc else None

    @classmethod
    async def list_operators(cls) -> List[Operator]:
        operators = Database.get_collection("operators")
        return [Operator(**_with_id(doc)) async for doc in operators.find({"active": True})]


class InMemoryQueueStore:
    """Local state used for demos, kiosks running offline and tests."""

    def __init__(
        self,
        tickets: Optional[Iterable[Dict[str, Any]]] = None,
        services: Optional[Iterable[Service]] = None,
        operators: Optional[Iterable[Operator]] = None,
    ):
        self.tickets: List[Dict[str, Any]] = [dict(t) for t in tickets or []]
        self.services: Dict[int, Service] = {s.id: s for s in services or []}
        self.operators: Dict[int, Operator] = {o.id: o for o in operators or []}

    def upsert_ticket(self, record: Dict[str, Any]) -> None:
        """Replace the record with the same id, or append it."""
        for index, existing in enumerate(self.tickets):
            if existing.get("id") == record.get("id"):
                self.tickets[index] = dict(record)
                return
        self.tickets.append(dict(record))

    async def fetch_tickets(self, now: Optional[datetime] = None) -> List[dict]:
        return [dict(t) for t in self.tickets]

    async def get_service(self, service_id: int) -> Optional[Service]:
        return self.services.get(service_id)

    async def list_services(self) -> List[Service]:
        return [s for s in self.services.values() if s.active]

    async def get_operator(self, operator_id: int) -> Optional[Operator]:
        return self.operators.get(operator_id)

    async def list_operators(self) -> List[Operator]:
        return [o for o in self.operators.values() if o.active]
