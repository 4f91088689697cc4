from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.models.batch import Batch


class BatchReader(Protocol):
    def batches_for_product(self, product_id: str) -> list[Batch]:
        ...

    def peak_received_quantity(self, product_id: str) -> int:
        ...


class SqlBatchReader:
    def __init__(self, db: Session):
        self.db = db

    def batches_for_product(self, product_id: str) -> list[Batch]:
        return list(
            self.db.execute(
                select(Batch)
                .where(Batch.product_id == product_id)
                .order_by(Batch.acquisition_date.asc(), Batch.created_at.asc(), Batch.id.asc())
            ).scalars().all()
        )

    def peak_received_quantity(self, product_id: str) -> int:
        q = select(func.coalesce(func.max(Batch.quantity_received), 0)).where(Batch.product_id == product_id)
        return int(self.db.execute(q).scalar_one())
