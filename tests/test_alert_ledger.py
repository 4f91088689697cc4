from datetime import timedelta

from sqlalchemy import select

from stockledger.models.reorder_alert import AlertKind, ReorderAlert
from stockledger.services import stock_service
from stockledger.services.alert_ledger import list_open_alerts, record_alert, retract_resolved
from tests.factories import NOW, TODAY, create_product, location


def _record(db, product, *, now, quantity=40):
    alert, created = record_alert(
        db,
        product_id=product.id,
        location_id=location(db, "SHELF").id,
        observed_quantity=quantity,
        kind=AlertKind.SHELF_RESTOCK,
        threshold=50,
        velocity_class="SLOW",
        now=now,
    )
    db.commit()
    return alert, created


def _stock(db, product, quantity):
    stock_service.receive_batch(
        db,
        product_id=product.id,
        location_code="WAREHOUSE",
        quantity=quantity,
        actor="clerk",
        today=TODAY,
        now=NOW,
    )


def test_record_alert_is_deduplicated_per_day(db):
    product = create_product(db)

    first, created = _record(db, product, now=NOW)
    again, created_again = _record(db, product, now=NOW + timedelta(hours=3), quantity=35)
    tomorrow, created_tomorrow = _record(db, product, now=NOW + timedelta(days=1))

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert created_tomorrow is True
    assert tomorrow.id != first.id


def test_retract_waits_for_cooldown(db):
    product = create_product(db)
    _record(db, product, now=NOW - timedelta(minutes=30))
    _stock(db, product, 60)

    assert retract_resolved(db, now=NOW) == 0
    db.commit()
    assert len(db.execute(select(ReorderAlert)).scalars().all()) == 1


def test_retract_removes_aged_alerts_once_stock_recovers(db):
    product = create_product(db)
    _record(db, product, now=NOW - timedelta(hours=2))
    _stock(db, product, 60)

    assert retract_resolved(db, now=NOW) == 1
    db.commit()
    assert db.execute(select(ReorderAlert)).scalars().all() == []


def test_retract_keeps_alerts_while_below_floor(db):
    product = create_product(db)
    _record(db, product, now=NOW - timedelta(hours=2))
    _stock(db, product, 20)

    assert retract_resolved(db, now=NOW) == 0


def test_list_alerts_retracts_resolved_first(db):
    recovered = create_product(db)
    short = create_product(db, code="EGGS", name="Eggs")
    _record(db, recovered, now=NOW - timedelta(hours=2))
    _record(db, short, now=NOW - timedelta(hours=2))
    _stock(db, recovered, 80)

    rows, total = stock_service.list_alerts(db, now=NOW)

    assert total == 1
    assert [row.product_id for row in rows] == [short.id]


def test_list_open_alerts_honours_lookback_window(db):
    product = create_product(db)
    _record(db, product, now=NOW - timedelta(days=10))
    _record(db, product, now=NOW - timedelta(days=1))

    rows, total = list_open_alerts(db, now=NOW, lookback_days=7)

    assert total == 1
    assert len(rows) == 1
