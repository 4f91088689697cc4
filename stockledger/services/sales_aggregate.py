from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from stockledger.models.sales import SaleLine
from stockledger.services.demand_classifier import SalesSample


class SalesReader(Protocol):
    def sample(self, product_id: str, *, window_days: int, now: datetime) -> SalesSample:
        ...


class SqlSalesReader:
    """Trailing-window aggregate over the sales subsystem's sale lines."""

    def __init__(self, db: Session):
        self.db = db

    def sample(self, product_id: str, *, window_days: int, now: datetime) -> SalesSample:
        since = now - timedelta(days=window_days)
        row = self.db.execute(
            select(
                func.count(distinct(SaleLine.transaction_ref)),
                func.coalesce(func.sum(SaleLine.quantity), 0),
            ).where(
                SaleLine.product_id == product_id,
                SaleLine.sold_at >= since,
                SaleLine.sold_at <= now,
            )
        ).one()
        return SalesSample(transaction_count=int(row[0]), units_sold=int(row[1]))
