from datetime import date, datetime, timezone

from sqlalchemy import select

from stockledger.models.location import Location, LocationCell
from stockledger.models.product import Product
from stockledger.services.demand_classifier import SalesSample

TODAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def create_product(db, *, code: str = "MILK-1L", name: str = "Fresh Milk 1L", stock_capacity: int | None = None) -> Product:
    product = Product(id=f"prod-{code.lower()}", code=code, name=name, is_active=True, stock_capacity=stock_capacity)
    db.add(product)
    db.commit()
    return product


def location(db, code: str) -> Location:
    return db.execute(select(Location).where(Location.code == code)).scalar_one()


def set_location_defaults(db, code: str, *, capacity: int | None, min_threshold: int) -> None:
    loc = location(db, code)
    loc.default_capacity = capacity
    loc.default_min_threshold = min_threshold
    db.commit()


def cell_snapshot(db) -> dict[tuple[str, str], int]:
    db.expire_all()
    cells = db.execute(select(LocationCell)).scalars().all()
    return {(cell.batch_id, cell.location_id): cell.current_quantity for cell in cells}


class StaticSalesReader:
    """Fixed sales aggregates per product; unknown products read as no sales."""

    def __init__(self, samples: dict[str, SalesSample] | None = None):
        self.samples = dict(samples or {})

    def sample(self, product_id: str, *, window_days: int, now: datetime) -> SalesSample:
        return self.samples.get(product_id, SalesSample(transaction_count=0, units_sold=0))


class FailingSalesReader:
    def __init__(self, exc: Exception):
        self.exc = exc

    def sample(self, product_id: str, *, window_days: int, now: datetime) -> SalesSample:
        raise self.exc
