"""Which ledger cells to draw from, and in what order.

Candidates are drawn "soonest to expire, then oldest first": batches expiring
inside the near-term horizon come first, then ascending expiry date (goods
without an expiry date last), then ascending acquisition date. Expired
batches are never candidates.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True)
class CandidateCell:
    cell_id: str
    batch_id: str
    quantity: int
    expiry_date: date | None
    acquisition_date: date


@dataclass(frozen=True)
class Draw:
    cell_id: str
    batch_id: str
    quantity: int


def is_expired(expiry_date: date | None, today: date) -> bool:
    return expiry_date is not None and expiry_date < today


def _draw_order_key(cell: CandidateCell, horizon_end: date) -> tuple:
    near_expiry = cell.expiry_date is not None and cell.expiry_date <= horizon_end
    return (
        0 if near_expiry else 1,
        cell.expiry_date is None,
        cell.expiry_date or date.max,
        cell.acquisition_date,
        cell.batch_id,
    )


def order_candidates(
    cells: Iterable[CandidateCell],
    *,
    today: date,
    horizon_days: int,
) -> list[CandidateCell]:
    horizon_end = today + timedelta(days=horizon_days)
    eligible = [cell for cell in cells if cell.quantity > 0 and not is_expired(cell.expiry_date, today)]
    return sorted(eligible, key=lambda cell: _draw_order_key(cell, horizon_end))


def satisfiable_quantity(cells: Iterable[CandidateCell], *, today: date) -> int:
    return sum(cell.quantity for cell in cells if cell.quantity > 0 and not is_expired(cell.expiry_date, today))


def plan_draws(ordered: Iterable[CandidateCell], quantity: int) -> tuple[list[Draw], int]:
    """Greedy walk over already-ordered candidates. Returns the draws and the unmet remainder."""
    remaining = quantity
    draws: list[Draw] = []
    for cell in ordered:
        if remaining <= 0:
            break
        take = min(remaining, cell.quantity)
        if take <= 0:
            continue
        draws.append(Draw(cell_id=cell.cell_id, batch_id=cell.batch_id, quantity=take))
        remaining -= take
    return draws, remaining
