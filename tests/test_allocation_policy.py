from datetime import date, timedelta

from stockledger.services.allocation_policy import (
    CandidateCell,
    is_expired,
    order_candidates,
    plan_draws,
    satisfiable_quantity,
)

TODAY = date(2026, 10, 19)


def _cell(batch_id: str, quantity: int, *, expiry: date | None, acquired: date) -> CandidateCell:
    return CandidateCell(
        cell_id=f"cell-{batch_id}",
        batch_id=batch_id,
        quantity=quantity,
        expiry_date=expiry,
        acquisition_date=acquired,
    )


def test_near_expiry_batches_are_drawn_before_older_stock():
    old_long_life = _cell("old", 10, expiry=TODAY + timedelta(days=300), acquired=TODAY - timedelta(days=60))
    new_short_life = _cell("soon", 10, expiry=TODAY + timedelta(days=5), acquired=TODAY - timedelta(days=1))
    non_perishable = _cell("tins", 10, expiry=None, acquired=TODAY - timedelta(days=90))

    ordered = order_candidates([old_long_life, non_perishable, new_short_life], today=TODAY, horizon_days=30)

    assert [cell.batch_id for cell in ordered] == ["soon", "old", "tins"]


def test_equal_expiry_falls_back_to_acquisition_date():
    expiry = TODAY + timedelta(days=90)
    later = _cell("later", 5, expiry=expiry, acquired=TODAY - timedelta(days=2))
    earlier = _cell("earlier", 5, expiry=expiry, acquired=TODAY - timedelta(days=20))

    ordered = order_candidates([later, earlier], today=TODAY, horizon_days=30)

    assert [cell.batch_id for cell in ordered] == ["earlier", "later"]


def test_expired_and_empty_cells_are_never_candidates():
    expired = _cell("expired", 10, expiry=TODAY - timedelta(days=1), acquired=TODAY - timedelta(days=100))
    empty = _cell("empty", 0, expiry=TODAY + timedelta(days=10), acquired=TODAY)
    expires_today = _cell("today", 3, expiry=TODAY, acquired=TODAY - timedelta(days=10))

    ordered = order_candidates([expired, empty, expires_today], today=TODAY, horizon_days=30)

    assert [cell.batch_id for cell in ordered] == ["today"]
    assert satisfiable_quantity([expired, empty, expires_today], today=TODAY) == 3
    assert is_expired(TODAY - timedelta(days=1), TODAY) is True
    assert is_expired(None, TODAY) is False


def test_plan_draws_is_greedy_and_reports_shortfall():
    ordered = [
        _cell("a", 4, expiry=None, acquired=TODAY),
        _cell("b", 10, expiry=None, acquired=TODAY),
    ]

    draws, remaining = plan_draws(ordered, 7)
    assert [(d.batch_id, d.quantity) for d in draws] == [("a", 4), ("b", 3)]
    assert remaining == 0

    draws, remaining = plan_draws(ordered, 20)
    assert sum(d.quantity for d in draws) == 14
    assert remaining == 6
