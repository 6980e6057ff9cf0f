"""
Queue service: keeps the last known good snapshot and answers wait estimates.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from ..models.estimation import ClientType, HistoricalStat, OptimizationFactors, PrecisionMetrics, WaitEstimate
from ..models.queue import QueueSnapshot, Ticket, TicketStatus
from ..models.service import Operator
from .reconciler import TicketIdentityError, apply_update
from .snapshot_builder import build_snapshot, local_day
from .stats_store import MongoHistoricalStatRepository
from .ticket_sanitizer import TicketLike, sanitize_ticket
from .time_estimation import WaitTimeEstimator, available_operators_for, queue_position

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_MINUTES = 10.0


class QueueService:
    """
    Single in-process consumer of ticket data.

    Snapshots are replaced, never edited, so readers can keep a reference
    to the previous one while a refresh or an event is being applied.
    """

    def __init__(
        self,
        store,
        estimator: WaitTimeEstimator,
        stats_repository: Optional[MongoHistoricalStatRepository] = None,
        default_baseline: float = DEFAULT_BASELINE_MINUTES,
    ):
        self.store = store
        self.estimator = estimator
        self.stats_repository = stats_repository
        self.default_baseline = default_baseline
        self.updated_at: Optional[datetime] = None

        self._snapshot = QueueSnapshot()
        self._stats_locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        # ticket id -> completion time, pruned to the current day on refresh
        self._learned_ticket_ids: Dict[int, datetime] = {}

    @property
    def snapshot(self) -> QueueSnapshot:
        return self._snapshot

    async def refresh(self, now: Optional[datetime] = None) -> QueueSnapshot:
        """Cold path: rebuild the snapshot from the store."""
        now = now or datetime.now()
        records = await self.store.fetch_tickets(now)
        self._snapshot = build_snapshot(records, current_ticket=self._snapshot.current_ticket, now=now)
        self.updated_at = now
        self._forget_learned_before(now)

        current = self._snapshot.current_ticket
        logger.info(
            "Queue refreshed: %d waiting, %d called, %d in progress, current=%s",
            len(self._snapshot.waiting),
            len(self._snapshot.called),
            len(self._snapshot.in_progress),
            current.id if current else None,
        )
        return self._snapshot

    async def handle_ticket_event(self, record: TicketLike, now: Optional[datetime] = None) -> QueueSnapshot:
        """
        Hot path: patch a single status change into the snapshot.

        Completed tickets with a known service start also feed the learning
        model, once per ticket even when the event is delivered again.

        Raises:
            TicketIdentityError: the event carries no usable ticket id.
        """
        ticket = sanitize_ticket(record)
        if ticket is None:
            logger.warning("Rejected ticket event without a usable id: %r", record)
            raise TicketIdentityError("Ticket event has no usable id")

        self._snapshot = apply_update(self._snapshot, ticket, now)
        self.updated_at = now or datetime.now()

        if ticket.status == TicketStatus.COMPLETED:
            await self._learn_from(ticket)
        return self._snapshot

    def _forget_learned_before(self, now: datetime) -> None:
        today = now.date()
        self._learned_ticket_ids = {
            ticket_id: completed_at
            for ticket_id, completed_at in self._learned_ticket_ids.items()
            if local_day(completed_at, now) >= today
        }

    async def _learn_from(self, ticket: Ticket) -> None:
        if ticket.service_id is None or ticket.service_start is None or ticket.completed_at is None:
            return
        try:
            minutes = (ticket.completed_at - ticket.service_start).total_seconds() / 60
        except TypeError:
            # naive and aware timestamps cannot be subtracted
            logger.warning("Ticket %s has incomparable service timestamps, not learning from it", ticket.id)
            return
        if minutes < 0:
            logger.warning("Ticket %s completed before its service started, not learning from it", ticket.id)
            return

        # Claimed before the first await so a concurrent duplicate is skipped
        if ticket.id in self._learned_ticket_ids:
            return
        self._learned_ticket_ids[ticket.id] = ticket.completed_at
        try:
            await self.record_completion(ticket.service_id, minutes, ticket.operator_id, ticket.completed_at)
        except Exception:
            self._learned_ticket_ids.pop(ticket.id, None)
            raise

    async def record_completion(
        self,
        service_id: int,
        actual_minutes: float,
        operator_id: Optional[int] = None,
        completed_at: Optional[datetime] = None,
    ) -> HistoricalStat:
        """Learn from one completed attention, serialized per service."""
        async with self._stats_locks[service_id]:
            stat = self.estimator.record_completion(service_id, actual_minutes, operator_id, completed_at)
            if self.stats_repository is not None:
                await self.stats_repository.save(stat)
        return stat

    def _queued_tickets(self) -> List[Ticket]:
        snapshot = self._snapshot
        return [*snapshot.in_progress, *snapshot.called, *snapshot.waiting]

    async def _baseline_for(self, service_id: Optional[int]) -> float:
        service = await self.store.get_service(service_id) if service_id is not None else None
        return service.estimated_time if service else self.default_baseline

    async def _efficiency_for(
        self,
        service_id: Optional[int],
        operators: List[Operator],
        operator_id: Optional[int],
    ) -> float:
        """Assigned operator's efficiency, else the mean over operators serving the service."""
        if operator_id is not None:
            operator = await self.store.get_operator(operator_id)
            if operator is not None:
                return operator.efficiency
        serving = [
            operator.efficiency for operator in operators
            if operator.active and (not operator.service_ids or service_id in operator.service_ids)
        ]
        return sum(serving) / len(serving) if serving else 1.0

    async def _estimate(
        self,
        service_id: Optional[int],
        ticket_id: Optional[int],
        client_type: ClientType = ClientType.REGULAR,
        operator_id: Optional[int] = None,
    ) -> WaitEstimate:
        position = queue_position(self._queued_tickets(), service_id, ticket_id)
        baseline = await self._baseline_for(service_id)
        operators = await self.store.list_operators()

        factors = OptimizationFactors(
            available_operators=available_operators_for(service_id, operators),
            queue_length=position,
            operator_efficiency=await self._efficiency_for(service_id, operators, operator_id),
            service_complexity=baseline,
            client_type=client_type,
            operator_id=operator_id,
        )
        wait = self.estimator.estimate(service_id, position, baseline, factors)
        return WaitEstimate(
            ticket_id=ticket_id,
            service_id=service_id,
            queue_position=position,
            estimated_wait_time=wait,
        )

    async def estimate_for_ticket(self, ticket_id: int) -> Optional[WaitEstimate]:
        """Estimate for a waiting ticket; None when it is not waiting."""
        ticket = self._snapshot.find(ticket_id)
        if ticket is None or ticket.status != TicketStatus.WAITING:
            return None
        return await self._estimate(ticket.service_id, ticket.id, operator_id=ticket.operator_id)

    async def estimate_for_service(
        self,
        service_id: int,
        client_type: ClientType = ClientType.REGULAR,
    ) -> WaitEstimate:
        """Estimate for a ticket about to be drawn at the kiosk."""
        return await self._estimate(service_id, None, client_type)

    async def estimates(self) -> List[WaitEstimate]:
        """Estimates for every waiting ticket whose service is known."""
        services = await self.store.list_services()
        operators = await self.store.list_operators()
        known = {service.id for service in services}
        tickets = self.estimator.recalculate_wait_times(self._queued_tickets(), services, operators)

        result = []
        for ticket in tickets:
            if ticket.status != TicketStatus.WAITING or ticket.service_id not in known:
                continue
            result.append(WaitEstimate(
                ticket_id=ticket.id,
                service_id=ticket.service_id,
                queue_position=queue_position(tickets, ticket.service_id, ticket.id),
                estimated_wait_time=ticket.estimated_wait_time,
            ))
        return result

    def precision_metrics(self, service_id: int) -> PrecisionMetrics:
        return self.estimator.precision_metrics(service_id)

