import pytest

from stockledger.core.config import Settings
from stockledger.models.reorder_alert import AlertKind
from stockledger.services.demand_classifier import VelocityClass
from stockledger.services.reorder_calculator import (
    ReorderPolicy,
    decide_reorder,
    estimate_capacity,
    fast_mover_threshold,
)

POLICY = ReorderPolicy()


@pytest.mark.parametrize("velocity", list(VelocityClass))
def test_below_safety_floor_always_alerts_at_floor(velocity):
    decision = decide_reorder(total_quantity=40, estimated_capacity=200, velocity_class=velocity, policy=POLICY)

    assert decision.alert_warranted is True
    assert decision.threshold == 50
    assert decision.alert_kind == AlertKind.SHELF_RESTOCK


def test_fast_mover_alerts_at_capacity_scaled_threshold():
    decision = decide_reorder(
        total_quantity=70,
        estimated_capacity=200,
        velocity_class=VelocityClass.FAST,
        policy=POLICY,
    )

    assert decision.threshold == 80
    assert decision.alert_warranted is True
    assert decision.alert_kind == AlertKind.NEW_BATCH_ORDER


def test_fast_mover_above_threshold_does_not_alert():
    decision = decide_reorder(
        total_quantity=81,
        estimated_capacity=200,
        velocity_class=VelocityClass.FAST,
        policy=POLICY,
    )

    assert decision.threshold == 80
    assert decision.alert_warranted is False
    assert decision.alert_kind is None


@pytest.mark.parametrize("velocity", [VelocityClass.MEDIUM, VelocityClass.SLOW, VelocityClass.NEW])
def test_slower_products_are_not_reordered_above_floor(velocity):
    decision = decide_reorder(total_quantity=70, estimated_capacity=200, velocity_class=velocity, policy=POLICY)

    assert decision.alert_warranted is False
    assert decision.threshold == 50


def test_stock_exactly_at_floor_is_not_below_it():
    decision = decide_reorder(total_quantity=50, estimated_capacity=100, velocity_class=VelocityClass.SLOW, policy=POLICY)
    assert decision.alert_warranted is False


@pytest.mark.parametrize(
    ("capacity", "expected"),
    [
        (100, 50),  # floor of 60 capped by C/2
        (200, 80),
        (250, 100),
        (400, 120),  # capped by the absolute ceiling
        (1000, 120),
    ],
)
def test_fast_mover_threshold_bounds(capacity, expected):
    assert fast_mover_threshold(capacity, POLICY) == expected


def test_estimate_capacity_takes_largest_heuristic():
    assert estimate_capacity(historical_peak_quantity=500, display_capacity=20, policy=POLICY) == 600
    assert estimate_capacity(historical_peak_quantity=10, display_capacity=80, policy=POLICY) == 160
    assert estimate_capacity(historical_peak_quantity=10, display_capacity=20, policy=POLICY) == 100


def test_policy_reads_constants_from_settings():
    config = Settings(safety_floor=30, fast_min_threshold=40, fast_max_threshold=90)
    policy = ReorderPolicy.from_settings(config)

    decision = decide_reorder(total_quantity=35, estimated_capacity=100, velocity_class=VelocityClass.NEW, policy=policy)
    assert decision.alert_warranted is False
    assert policy.fast_max_threshold == 90
