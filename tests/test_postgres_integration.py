import os
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, select, text
from sqlalchemy.orm import sessionmaker

from stockledger.core.config import settings
from stockledger.core.errors import InsufficientStockError, ResourceBusyError
from stockledger.models.location import Location, LocationCell
from stockledger.models.product import Product
from stockledger.services import stock_service


def _test_pg_url() -> str | None:
    return os.getenv("TEST_POSTGRES_DATABASE_URL")


def _alembic_config(url: str) -> Config:
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", url)
    return alembic_cfg


@pytest.mark.integration
def test_postgres_connection_and_core_tables():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")

    engine = create_engine(url, pool_pre_ping=True)
    with engine.connect() as conn:
        assert conn.execute(text("SELECT 1")).scalar_one() == 1

    table_names = set(inspect(engine).get_table_names())
    assert "location_cells" in table_names
    assert "stock_movements" in table_names
    assert "reorder_alerts" in table_names


@pytest.mark.integration
@pytest.mark.parametrize(
    "stocked_at",
    [settings.display_location_code, settings.warehouse_location_code],
    ids=["stocked-on-display", "display-empty-restocked-from-warehouse"],
)
def test_concurrent_deductions_never_oversell(stocked_at):
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")

    engine = create_engine(url, pool_pre_ping=True, pool_size=10)
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    product_id = str(uuid.uuid4())
    with session_local() as db:
        db.add(Product(id=product_id, code=f"IT-{product_id[:8]}", name="Integration item", is_active=True))
        db.commit()
        for index in range(3):
            stock_service.receive_batch(
                db,
                product_id=product_id,
                location_code=stocked_at,
                quantity=10,
                actor="integration",
                batch_code=f"IT-{index}",
                expiry_date=date.today() + timedelta(days=30 + index),
            )

    # Store failures are not caught, so a duplicate cell insert fails the test.
    def sell_one() -> str:
        with session_local() as db:
            try:
                stock_service.deduct(db, product_id=product_id, quantity=1, actor="integration")
            except (InsufficientStockError, ResourceBusyError) as exc:
                return exc.code
            return "ok"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: sell_one(), range(16)))

    assert outcomes.count("ok") <= 30
    with session_local() as db:
        rows = db.execute(
            select(LocationCell.current_quantity, LocationCell.capacity, Location.code)
            .join(Location, Location.id == LocationCell.location_id)
            .where(LocationCell.product_id == product_id)
        ).all()
        assert all(quantity >= 0 for quantity, _, _ in rows)
        assert sum(quantity for quantity, _, _ in rows) == 30 - outcomes.count("ok")
        shelf = [(quantity, capacity) for quantity, capacity, code in rows if code == settings.display_location_code]
        if shelf:
            assert sum(quantity for quantity, _ in shelf) <= max(capacity for _, capacity in shelf)


@pytest.mark.integration
def test_alembic_upgrade_downgrade_smoke():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run migration smoke tests.")
    if os.getenv("ALLOW_DESTRUCTIVE_MIGRATION_TESTS") != "1":
        pytest.skip("Set ALLOW_DESTRUCTIVE_MIGRATION_TESTS=1 for downgrade smoke test.")

    alembic_cfg = _alembic_config(url)
    previous_database_url = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = url
    try:
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "20261019_0001")
        command.upgrade(alembic_cfg, "head")
    finally:
        if previous_database_url is None:
            os.environ.pop("DATABASE_URL", None)
        else:
            os.environ["DATABASE_URL"] = previous_database_url
