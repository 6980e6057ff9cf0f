"""
Adaptive wait-time estimation.

Learns per-service durations from completed tickets (overall, by hour of
day, by day of week and by operator) and blends them with real-time load
signals. Services without enough history fall back to a factor-adjusted
baseline.
"""

import logging
import math
import random
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.estimation import (
    ClientType,
    HistoricalStat,
    OptimizationFactors,
    PrecisionMetrics,
)
from ..models.queue import Ticket, TicketStatus
from ..models.service import Operator, Service
from .bucket_sorter import sort_waiting
from .stats_store import HistoricalStatStore

logger = logging.getLogger(__name__)

MIN_SAMPLES = 5

# Maximum weight old samples keep when blending a new one in
OVERALL_WEIGHT_CAP = 100
HOURLY_WEIGHT_CAP = 10
DAY_OF_WEEK_WEIGHT_CAP = 5
OPERATOR_WEIGHT_CAP = 20

OPTIMIZATION_WEIGHTS = {
    "historical": 0.4,
    "real_time": 0.3,
    "operator_efficiency": 0.2,
    "queue_dynamics": 0.1,
}

CLIENT_TYPE_MULTIPLIERS = {
    ClientType.REGULAR: 1.0,
    ClientType.VIP: 0.8,
    ClientType.NEW: 1.2,
}


def round_minutes(value: float) -> int:
    """Round half up to a whole minute."""
    return int(math.floor(value + 0.5))


def blend_average(average: float, samples: int, cap: int, actual: float) -> float:
    weight = min(samples, cap)
    return (average * weight + actual) / (weight + 1)


def _update_pattern(
    pattern: Dict[int, float],
    samples: Dict[int, int],
    key: int,
    cap: int,
    actual: float,
) -> None:
    count = samples.get(key, 0)
    pattern[key] = blend_average(pattern.get(key, 0.0), count, cap, actual)
    samples[key] = count + 1


def _load_ratio(factors: OptimizationFactors) -> float:
    return (factors.queue_length or 0) / max(factors.available_operators, 1)


def queue_position(
    tickets: Iterable[Ticket],
    service_id: Optional[int],
    ticket_id: Optional[int] = None,
) -> int:
    """
    Number of tickets ahead in the same service.

    Called tickets are always ahead; waiting tickets count when they sort
    before the given ticket. Without a ticket id every called or waiting
    ticket counts, as for a ticket about to be drawn.
    """
    same_service = [t for t in tickets if t.service_id == service_id]
    called = [t for t in same_service if t.status == TicketStatus.CALLED and t.id != ticket_id]
    waiting = sort_waiting(t for t in same_service if t.status == TicketStatus.WAITING)

    ahead = len(called)
    for ticket in waiting:
        if ticket.id == ticket_id:
            break
        ahead += 1
    return ahead


def available_operators_for(service_id: Optional[int], operators: Iterable[Operator]) -> int:
    """Active operators that can serve the service; unassigned operators serve any."""
    return sum(
        1 for operator in operators
        if operator.active and (not operator.service_ids or service_id in operator.service_ids)
    )


class WaitTimeEstimator:
    """
    Estimates waits from learned service durations.

    The stat store and the random source are injected; the random source
    only feeds the jitter applied to services without history.
    """

    def __init__(
        self,
        store: HistoricalStatStore,
        rng: Optional[random.Random] = None,
        min_samples: int = MIN_SAMPLES,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.min_samples = min_samples

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def record_completion(
        self,
        service_id: int,
        actual_minutes: float,
        operator_id: Optional[int] = None,
        completed_at: Optional[datetime] = None,
    ) -> HistoricalStat:
        """
        Blend one completed attention into the service's history.

        Callers must serialize calls for the same service id.

        Raises:
            ValueError: the duration is negative or not a finite number.
        """
        if isinstance(actual_minutes, bool):
            raise ValueError("actual_minutes must be a number")
        actual = float(actual_minutes)
        if not math.isfinite(actual) or actual < 0:
            raise ValueError(f"actual_minutes must be a non-negative number, got {actual_minutes!r}")

        at = completed_at or datetime.now()
        current = self.store.get(service_id)
        stat = current.model_copy(deep=True) if current else HistoricalStat(service_id=service_id)

        stat.average_service_time = blend_average(
            stat.average_service_time, stat.completed_tickets, OVERALL_WEIGHT_CAP, actual
        )
        stat.completed_tickets += 1
        _update_pattern(stat.hourly_pattern, stat.hourly_samples, at.hour, HOURLY_WEIGHT_CAP, actual)
        _update_pattern(
            stat.day_of_week_pattern, stat.day_of_week_samples, at.weekday(), DAY_OF_WEEK_WEIGHT_CAP, actual
        )
        if operator_id is not None:
            _update_pattern(
                stat.operator_pattern, stat.operator_samples, operator_id, OPERATOR_WEIGHT_CAP, actual
            )
        stat.last_updated = at

        self.store.put(stat)
        logger.debug(
            "Service %s learned %.1f min (avg %.2f over %d samples)",
            service_id, actual, stat.average_service_time, stat.completed_tickets
        )
        return stat

    def has_history(self, service_id: int) -> bool:
        stat = self.store.get(service_id)
        return stat is not None and stat.completed_tickets >= self.min_samples

    # ------------------------------------------------------------------
    # Sub-estimates
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_factors(
        queue_position: int,
        baseline_minutes: float,
        factors: Optional[OptimizationFactors] = None,
        now: Optional[datetime] = None,
    ) -> OptimizationFactors:
        """Fill unset factors from the call: queue length, baseline, current hour and day."""
        factors = factors or OptimizationFactors()
        now = now or datetime.now()
        update = {}
        if factors.queue_length is None:
            update["queue_length"] = max(queue_position, 0)
        if factors.time_of_day is None:
            update["time_of_day"] = now.hour
        if factors.day_of_week is None:
            update["day_of_week"] = now.weekday()
        if factors.service_complexity is None:
            update["service_complexity"] = baseline_minutes
        return factors.model_copy(update=update) if update else factors

    @staticmethod
    def adjusted_baseline(baseline_minutes: float, factors: OptimizationFactors) -> float:
        """Baseline scaled by operator efficiency, client type and load."""
        adjusted = baseline_minutes * (2 - factors.operator_efficiency)
        adjusted *= CLIENT_TYPE_MULTIPLIERS[factors.client_type]

        load = _load_ratio(factors)
        if load > 5:
            adjusted *= 1.2
        elif load < 1:
            adjusted *= 0.9
        return max(adjusted, 0.0)

    @staticmethod
    def _historical_estimate(stat: HistoricalStat, factors: OptimizationFactors) -> float:
        hourly = stat.hourly_pattern.get(factors.time_of_day)
        if hourly is not None:
            return hourly
        daily = stat.day_of_week_pattern.get(factors.day_of_week)
        if daily is not None:
            return daily
        return stat.average_service_time

    @staticmethod
    def _real_time_estimate(factors: OptimizationFactors) -> float:
        complexity = factors.service_complexity or 0.0
        load = _load_ratio(factors)
        if load > 5:
            return complexity * 1.3
        if load > 3:
            return complexity * 1.1
        if load < 1:
            return complexity * 0.9
        return complexity

    @staticmethod
    def _operator_efficiency_estimate(stat: HistoricalStat, factors: OptimizationFactors) -> float:
        base = stat.average_service_time
        if factors.operator_id is not None:
            base = stat.operator_pattern.get(factors.operator_id, base)
        return base * (2 - factors.operator_efficiency)

    @staticmethod
    def _queue_dynamics_estimate(factors: OptimizationFactors) -> float:
        dynamic = (factors.service_complexity or 0.0) * CLIENT_TYPE_MULTIPLIERS[factors.client_type]
        # Very long queues push counters to work faster
        if (factors.queue_length or 0) > 10:
            dynamic *= 0.95
        return dynamic

    @staticmethod
    def variance(stat: HistoricalStat) -> float:
        """Spread of the learned patterns relative to their mean, capped at 0.5."""
        times = [
            *stat.hourly_pattern.values(),
            *stat.day_of_week_pattern.values(),
            *stat.operator_pattern.values(),
        ]
        if len(times) < 2:
            return 0.1
        mean = sum(times) / len(times)
        if mean <= 0:
            return 0.0
        spread = sum((time - mean) ** 2 for time in times) / len(times)
        return min(spread / mean, 0.5)

    def _service_time(
        self,
        service_id: int,
        baseline_minutes: float,
        factors: OptimizationFactors,
    ) -> float:
        if not self.has_history(service_id):
            return self.adjusted_baseline(baseline_minutes, factors)

        stat = self.store.get(service_id)
        blended = (
            self._historical_estimate(stat, factors) * OPTIMIZATION_WEIGHTS["historical"]
            + self._real_time_estimate(factors) * OPTIMIZATION_WEIGHTS["real_time"]
            + self._operator_efficiency_estimate(stat, factors) * OPTIMIZATION_WEIGHTS["operator_efficiency"]
            + self._queue_dynamics_estimate(factors) * OPTIMIZATION_WEIGHTS["queue_dynamics"]
        )
        return max(blended, baseline_minutes * 0.5)

    def _variability(self, service_id: int) -> float:
        if self.has_history(service_id):
            return 1 + self.variance(self.store.get(service_id)) * 0.1
        return 1 + (self.rng.random() - 0.5) * 0.3

    # ------------------------------------------------------------------
    # Public estimates
    # ------------------------------------------------------------------

    def estimate_service_time(
        self,
        service_id: int,
        baseline_minutes: float,
        factors: Optional[OptimizationFactors] = None,
        queue_position: int = 1,
    ) -> int:
        """Per-ticket service time in whole minutes."""
        baseline = _safe_minutes(baseline_minutes)
        resolved = self.resolve_factors(queue_position, baseline, factors)
        return round_minutes(self._service_time(service_id, baseline, resolved))

    def estimate(
        self,
        service_id: int,
        queue_position: int,
        baseline_minutes: float,
        factors: Optional[OptimizationFactors] = None,
    ) -> int:
        """
        Estimated wait in whole minutes for a ticket at `queue_position`.

        Unknown services and empty history degrade to the baseline path.
        The result is bounded to [0.3 * baseline, 2 * baseline * position].
        """
        baseline = _safe_minutes(baseline_minutes)
        position = max(int(queue_position), 0)
        resolved = self.resolve_factors(position, baseline, factors)

        service_time = self._service_time(service_id, baseline, resolved)
        effective = service_time / max(resolved.available_operators, 1)
        wait = position * effective * self._variability(service_id)

        min_wait = baseline * 0.3
        max_wait = baseline * position * 2
        return round_minutes(max(min_wait, min(wait, max_wait)))

    def estimated_service_time(
        self,
        service_id: int,
        baseline_minutes: float,
        operator_id: Optional[int] = None,
        at: Optional[datetime] = None,
    ) -> int:
        """Learned duration for one attention: operator, then hour, then day, then average."""
        if not self.has_history(service_id):
            return round_minutes(_safe_minutes(baseline_minutes))

        stat = self.store.get(service_id)
        at = at or datetime.now()
        for pattern, key in (
            (stat.operator_pattern, operator_id),
            (stat.hourly_pattern, at.hour),
            (stat.day_of_week_pattern, at.weekday()),
        ):
            if key is not None and key in pattern:
                return round_minutes(pattern[key])
        return round_minutes(stat.average_service_time)

    def precision_metrics(self, service_id: int) -> PrecisionMetrics:
        if not self.has_history(service_id):
            return PrecisionMetrics()

        stat = self.store.get(service_id)
        variance = self.variance(stat)
        accuracy = max(0.0, min(100.0, (1 - variance) * 100))
        return PrecisionMetrics(
            accuracy=round_minutes(accuracy),
            total_predictions=stat.completed_tickets,
            average_error=round_minutes(variance * stat.average_service_time),
        )

    def recalculate_wait_times(
        self,
        tickets: Iterable[Ticket],
        services: Iterable[Service],
        operators: Iterable[Operator],
    ) -> Tuple[Ticket, ...]:
        """Refresh `estimated_wait_time` on every waiting ticket with a known service."""
        tickets = list(tickets)
        operators = list(operators)
        services_by_id = {service.id: service for service in services}

        result: List[Ticket] = []
        for ticket in tickets:
            service = services_by_id.get(ticket.service_id)
            if ticket.status != TicketStatus.WAITING or service is None:
                result.append(ticket)
                continue

            position = queue_position(tickets, ticket.service_id, ticket.id)
            factors = OptimizationFactors(
                available_operators=available_operators_for(service.id, operators),
                queue_length=position,
                service_complexity=service.estimated_time,
            )
            wait = self.estimate(service.id, position, service.estimated_time, factors)
            result.append(ticket.model_copy(update={"estimated_wait_time": wait}))
        return tuple(result)


def _safe_minutes(value: float) -> float:
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return 0.0
    return minutes if math.isfinite(minutes) and minutes > 0 else 0.0
