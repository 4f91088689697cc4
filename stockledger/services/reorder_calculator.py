from dataclasses import dataclass

from stockledger.core.config import Settings
from stockledger.models.reorder_alert import AlertKind
from stockledger.services.demand_classifier import VelocityClass


@dataclass(frozen=True)
class ReorderPolicy:
    safety_floor: int = 50
    fast_capacity_ratio: float = 0.40
    fast_min_threshold: int = 60
    fast_max_threshold: int = 120
    capacity_floor: int = 100
    capacity_peak_multiplier: float = 1.2
    capacity_display_multiplier: int = 2

    @classmethod
    def from_settings(cls, config: Settings) -> "ReorderPolicy":
        return cls(
            safety_floor=config.safety_floor,
            fast_capacity_ratio=config.fast_capacity_ratio,
            fast_min_threshold=config.fast_min_threshold,
            fast_max_threshold=config.fast_max_threshold,
            capacity_floor=config.capacity_floor,
            capacity_peak_multiplier=config.capacity_peak_multiplier,
            capacity_display_multiplier=config.capacity_display_multiplier,
        )


@dataclass(frozen=True)
class ReorderDecision:
    velocity_class: VelocityClass
    threshold: int
    alert_warranted: bool
    alert_kind: AlertKind | None
    total_quantity: int
    estimated_capacity: int


def estimate_capacity(
    *,
    historical_peak_quantity: int,
    display_capacity: int,
    policy: ReorderPolicy,
) -> int:
    """Heuristic ceiling for a product's total stock; not enforced anywhere."""
    return max(
        int(historical_peak_quantity * policy.capacity_peak_multiplier),
        display_capacity * policy.capacity_display_multiplier,
        policy.capacity_floor,
    )


def fast_mover_threshold(estimated_capacity: int, policy: ReorderPolicy) -> int:
    scaled = max(int(estimated_capacity * policy.fast_capacity_ratio), policy.fast_min_threshold)
    ceiling = min(estimated_capacity // 2, policy.fast_max_threshold)
    return min(scaled, ceiling)


def decide_reorder(
    *,
    total_quantity: int,
    estimated_capacity: int,
    velocity_class: VelocityClass,
    policy: ReorderPolicy,
) -> ReorderDecision:
    """
    Below the safety floor an alert is always warranted. Above it only FAST
    products may alert, against a capacity-scaled threshold; slower products are
    pinned to the floor so they are never over-ordered.
    """
    if total_quantity < policy.safety_floor:
        return ReorderDecision(
            velocity_class=velocity_class,
            threshold=policy.safety_floor,
            alert_warranted=True,
            alert_kind=AlertKind.SHELF_RESTOCK,
            total_quantity=total_quantity,
            estimated_capacity=estimated_capacity,
        )

    if velocity_class == VelocityClass.FAST:
        threshold = fast_mover_threshold(estimated_capacity, policy)
        warranted = total_quantity <= threshold
        return ReorderDecision(
            velocity_class=velocity_class,
            threshold=threshold,
            alert_warranted=warranted,
            alert_kind=AlertKind.NEW_BATCH_ORDER if warranted else None,
            total_quantity=total_quantity,
            estimated_capacity=estimated_capacity,
        )

    return ReorderDecision(
        velocity_class=velocity_class,
        threshold=policy.safety_floor,
        alert_warranted=False,
        alert_kind=None,
        total_quantity=total_quantity,
        estimated_capacity=estimated_capacity,
    )
