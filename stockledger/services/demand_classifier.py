import enum
from dataclasses import dataclass


class VelocityClass(str, enum.Enum):
    FAST = "FAST"
    MEDIUM = "MEDIUM"
    SLOW = "SLOW"
    NEW = "NEW"


@dataclass(frozen=True)
class SalesSample:
    """Trailing-window sales aggregate for one product."""

    transaction_count: int
    units_sold: int


# Checked top-down; the first rule either signal satisfies wins.
_VELOCITY_RULES: tuple[tuple[VelocityClass, int, int], ...] = (
    (VelocityClass.FAST, 10, 50),
    (VelocityClass.MEDIUM, 3, 15),
    (VelocityClass.SLOW, 1, 1),
)


def classify_velocity(sample: SalesSample) -> VelocityClass:
    for velocity_class, min_transactions, min_units in _VELOCITY_RULES:
        if sample.transaction_count >= min_transactions or sample.units_sold >= min_units:
            return velocity_class
    return VelocityClass.NEW
