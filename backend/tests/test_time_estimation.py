"""
Tests for the adaptive wait-time estimator.
"""

import math
import random
import pytest
from datetime import datetime

from queuedesk.models.estimation import ClientType, HistoricalStat, OptimizationFactors, PrecisionMetrics
from queuedesk.models.service import Operator, Service
from queuedesk.services.stats_store import HistoricalStatStore
from queuedesk.services.ticket_sanitizer import sanitize_ticket
from queuedesk.services.time_estimation import (
    WaitTimeEstimator,
    available_operators_for,
    blend_average,
    queue_position,
    round_minutes,
)

from conftest import NOW, StubRandom, raw_ticket


def factors(**values):
    values.setdefault("queue_length", 2)
    values.setdefault("time_of_day", 10)
    values.setdefault("day_of_week", 0)
    return OptimizationFactors(**values)


@pytest.fixture
def learned(stat_store):
    stat_store.put(HistoricalStat(
        service_id=1,
        average_service_time=10.0,
        completed_tickets=10,
        hourly_pattern={10: 12.0},
        hourly_samples={10: 4},
    ))
    return stat_store


def test_round_minutes_rounds_half_up():
    assert round_minutes(2.5) == 3
    assert round_minutes(3.5) == 4
    assert round_minutes(2.49) == 2


def test_overall_average_weight_is_capped(estimator, stat_store):
    stat_store.put(HistoricalStat(service_id=1, average_service_time=10.0, completed_tickets=150))

    stat = estimator.record_completion(1, 20, completed_at=datetime(2026, 10, 18, 9, 0))

    assert stat.average_service_time == pytest.approx((10 * 100 + 20) / 101)
    assert stat.completed_tickets == 151


def test_hourly_pattern_weight_is_capped(estimator, stat_store):
    stat_store.put(HistoricalStat(
        service_id=1,
        average_service_time=10.0,
        completed_tickets=30,
        hourly_pattern={9: 10.0},
        hourly_samples={9: 30},
    ))

    stat = estimator.record_completion(1, 21, completed_at=datetime(2026, 10, 18, 9, 40))

    assert stat.hourly_pattern[9] == pytest.approx(11.0)
    assert stat.hourly_samples[9] == 31


def test_first_completion_seeds_every_pattern(estimator):
    at = datetime(2026, 10, 19, 14, 5)
    stat = estimator.record_completion(3, 12, operator_id=7, completed_at=at)

    assert stat.average_service_time == 12
    assert stat.hourly_pattern == {14: 12}
    assert stat.day_of_week_pattern == {at.weekday(): 12}
    assert stat.operator_pattern == {7: 12}
    assert stat.last_updated == at


def test_record_completion_does_not_mutate_stored_stat(estimator, learned):
    before = learned.get(1)
    estimator.record_completion(1, 30, completed_at=NOW)

    assert before.completed_tickets == 10
    assert learned.get(1).completed_tickets == 11


@pytest.mark.parametrize("minutes", [-1, float("nan"), float("inf"), True, "ten"])
def test_invalid_durations_are_rejected(estimator, minutes):
    with pytest.raises(ValueError):
        estimator.record_completion(1, minutes)


def test_blend_average_without_history_is_the_sample():
    assert blend_average(0.0, 0, 100, 7.0) == 7.0


def test_fallback_is_the_adjusted_baseline(estimator):
    vip = factors(client_type=ClientType.VIP)

    assert estimator.adjusted_baseline(10, estimator.resolve_factors(1, 10, vip)) == pytest.approx(8.0)
    assert estimator.estimate_service_time(1, 10, vip) == 8
    assert estimator.estimate(1, 1, 10, vip) == 8


def test_too_few_samples_never_use_history(estimator, stat_store):
    stat_store.put(HistoricalStat(
        service_id=1,
        average_service_time=30.0,
        completed_tickets=4,
        hourly_pattern={10: 30.0},
    ))

    assert not estimator.has_history(1)
    assert estimator.estimate(1, 1, 10, factors()) == 10


def test_estimate_is_clamped_to_the_upper_bound(estimator):
    slow = factors(operator_efficiency=0.1, client_type=ClientType.NEW, queue_length=12)

    # 10 * 1.9 * 1.2 * 1.2 = 27.36 minutes, above 2 * 10 * 1
    assert estimator.estimate(1, 1, 10, slow) == 20


def test_estimate_is_clamped_to_the_lower_bound(estimator):
    assert estimator.estimate(1, 0, 10, factors()) == 3


def test_blended_history_estimate(estimator, learned):
    # 12 * 0.4 + 10 * 0.3 + 10 * 0.2 + 10 * 0.1 = 10.8
    assert estimator.estimate_service_time(1, 10, factors()) == 11
    # 2 * 10.8 * (1 + 0.1 * 0.1)
    assert estimator.estimate(1, 2, 10, factors()) == 22


def test_history_falls_back_to_day_then_average(estimator, learned):
    stat = learned.get(1)
    stat.day_of_week_pattern[2] = 16.0

    by_day = factors(time_of_day=15, day_of_week=2)
    by_average = factors(time_of_day=15, day_of_week=3)

    # 16 * 0.4 + 3 + 2 + 1 = 12.4
    assert estimator.estimate_service_time(1, 10, by_day) == 12
    # 10 * 0.4 + 3 + 2 + 1 = 10
    assert estimator.estimate_service_time(1, 10, by_average) == 10


def test_more_operators_shorten_the_wait(estimator, learned):
    one = estimator.estimate(1, 4, 10, factors(queue_length=4, available_operators=1))
    two = estimator.estimate(1, 4, 10, factors(queue_length=4, available_operators=2))
    assert two < one


def test_later_positions_never_wait_less():
    estimator = WaitTimeEstimator(HistoricalStatStore(), rng=random.Random(7))
    for _ in range(50):
        far = estimator.estimate(1, 5, 10, factors())
        near = estimator.estimate(1, 1, 10, factors())
        assert far >= near


def test_seeded_jitter_is_reproducible():
    first = WaitTimeEstimator(HistoricalStatStore(), rng=random.Random(42))
    second = WaitTimeEstimator(HistoricalStatStore(), rng=random.Random(42))

    runs = [
        [estimator.estimate(1, position, 10, factors()) for position in range(1, 8)]
        for estimator in (first, second)
    ]
    assert runs[0] == runs[1]


def test_unknown_service_and_bad_baseline_do_not_raise(estimator):
    assert estimator.estimate(999, 2, 10) == 20
    assert estimator.estimate(999, 2, float("nan")) == 0
    assert estimator.estimate(999, -3, 10) == 3


def test_estimated_service_time_prefers_operator_then_hour_then_day(estimator, learned):
    stat = learned.get(1)
    stat.operator_pattern[7] = 14.0
    stat.day_of_week_pattern[NOW.weekday()] = 9.0

    assert estimator.estimated_service_time(1, 10, operator_id=7, at=NOW.replace(hour=10)) == 14
    assert estimator.estimated_service_time(1, 10, at=NOW.replace(hour=10)) == 12
    assert estimator.estimated_service_time(1, 10, at=NOW.replace(hour=16)) == 9
    assert estimator.estimated_service_time(2, 10.4) == 10


def test_precision_metrics(estimator, learned):
    assert estimator.precision_metrics(2) == PrecisionMetrics()

    learned.get(1).operator_pattern[7] = 8.0
    metrics = estimator.precision_metrics(1)

    # patterns 12 and 8: variance 4 over mean 10
    assert metrics.accuracy == 60
    assert metrics.total_predictions == 10
    assert metrics.average_error == 4


def test_variance_is_capped():
    stat = HistoricalStat(service_id=1, hourly_pattern={9: 1.0, 10: 40.0})
    assert WaitTimeEstimator.variance(stat) == 0.5
    assert math.isclose(WaitTimeEstimator.variance(HistoricalStat(service_id=1)), 0.1)


def test_queue_position_counts_called_and_better_waiting(spec_tickets):
    tickets = [sanitize_ticket(record) for record in spec_tickets]
    tickets.append(sanitize_ticket(raw_ticket(4, "CALLED")))
    tickets.append(sanitize_ticket(raw_ticket(5, "WAITING", priority=6, service_id=2)))

    assert queue_position(tickets, 1, 2) == 1
    assert queue_position(tickets, 1, 1) == 2
    assert queue_position(tickets, 1) == 3
    assert queue_position(tickets, 2, 5) == 0


def test_available_operators_for():
    operators = [
        Operator(id=1, name="A", service_ids=[1]),
        Operator(id=2, name="B", service_ids=[2]),
        Operator(id=3, name="C"),
        Operator(id=4, name="D", active=False, service_ids=[1]),
    ]
    assert available_operators_for(1, operators) == 2
    assert available_operators_for(5, operators) == 1


def test_recalculate_wait_times(estimator, spec_tickets):
    tickets = [sanitize_ticket(record) for record in spec_tickets]
    services = [Service(id=1, name="Cashier", prefix="C", estimated_time=10)]
    operators = [Operator(id=7, name="Ana", service_ids=[1])]

    updated = {ticket.id: ticket for ticket in estimator.recalculate_wait_times(tickets, services, operators)}

    assert updated[2].estimated_wait_time == 3
    assert updated[1].estimated_wait_time == 10
    assert updated[3].estimated_wait_time is None


def test_jitter_stays_within_fifteen_percent():
    estimator = WaitTimeEstimator(HistoricalStatStore(), rng=StubRandom(1.0))
    # 1 + 0.5 * 0.3 = 1.15
    assert estimator.estimate(1, 2, 10, factors()) == 23
