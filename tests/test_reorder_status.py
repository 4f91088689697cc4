import uuid
from datetime import timedelta

from sqlalchemy import select

from stockledger.models.reorder_alert import AlertKind, ReorderAlert
from stockledger.models.sales import SaleLine
from stockledger.services import stock_service
from stockledger.services.demand_classifier import SalesSample, VelocityClass
from stockledger.services.sales_aggregate import SqlSalesReader
from tests.factories import NOW, TODAY, StaticSalesReader, create_product

FAST = SalesSample(transaction_count=12, units_sold=80)
SLOW = SalesSample(transaction_count=1, units_sold=2)


def _receive(db, product, code, quantity):
    stock_service.receive_batch(
        db,
        product_id=product.id,
        location_code=code,
        quantity=quantity,
        actor="clerk",
        expiry_date=TODAY + timedelta(days=120),
        today=TODAY,
        now=NOW,
    )


def test_total_below_floor_always_warrants_alert(db):
    product = create_product(db)
    _receive(db, product, "WAREHOUSE", 40)

    for sample in (FAST, SLOW):
        status = stock_service.get_reorder_status(
            db,
            product_id=product.id,
            now=NOW,
            sales_reader=StaticSalesReader({product.id: sample}),
        )
        assert status.alert_warranted is True
        assert status.threshold == 50
        assert status.alert_kind == AlertKind.SHELF_RESTOCK


def test_fast_mover_uses_configured_capacity(db):
    product = create_product(db, stock_capacity=200)
    _receive(db, product, "WAREHOUSE", 70)

    status = stock_service.get_reorder_status(
        db,
        product_id=product.id,
        now=NOW,
        sales_reader=StaticSalesReader({product.id: FAST}),
    )

    assert status.velocity_class == VelocityClass.FAST
    assert status.estimated_capacity == 200
    assert status.threshold == 80
    assert status.alert_warranted is True
    assert status.alert_kind == AlertKind.NEW_BATCH_ORDER


def test_slow_mover_above_floor_is_not_reordered(db):
    product = create_product(db, stock_capacity=200)
    _receive(db, product, "WAREHOUSE", 70)

    status = stock_service.get_reorder_status(
        db,
        product_id=product.id,
        now=NOW,
        sales_reader=StaticSalesReader({product.id: SLOW}),
    )

    assert status.velocity_class == VelocityClass.SLOW
    assert status.alert_warranted is False
    assert status.alert_kind is None


def test_capacity_is_estimated_from_history_when_not_configured(db):
    product = create_product(db)
    _receive(db, product, "WAREHOUSE", 300)

    status = stock_service.get_reorder_status(db, product_id=product.id, now=NOW)

    # max(1.2 * 300, 2 * 100, 100)
    assert status.estimated_capacity == 360
    assert status.velocity_class == VelocityClass.NEW


def test_sql_sales_reader_counts_trailing_window_only(db):
    product = create_product(db)
    for index, days_ago in enumerate((1, 5, 5, 45)):
        db.add(
            SaleLine(
                id=str(uuid.uuid4()),
                product_id=product.id,
                transaction_ref="T-1" if index < 2 else f"T-{index}",
                quantity=4,
                sold_at=NOW - timedelta(days=days_ago),
            )
        )
    db.commit()

    sample = SqlSalesReader(db).sample(product.id, window_days=30, now=NOW)

    assert sample == SalesSample(transaction_count=2, units_sold=12)


def test_deduction_records_alert_for_fast_mover(db):
    product = create_product(db, stock_capacity=200)
    _receive(db, product, "WAREHOUSE", 100)
    reader = StaticSalesReader({product.id: FAST})

    stock_service.deduct(db, product_id=product.id, quantity=25, actor="cashier", today=TODAY, now=NOW, sales_reader=reader)

    alerts = db.execute(select(ReorderAlert)).scalars().all()
    assert len(alerts) == 1
    assert alerts[0].alert_kind == AlertKind.NEW_BATCH_ORDER
    assert alerts[0].observed_quantity == 75
    assert alerts[0].threshold == 80
