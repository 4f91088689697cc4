from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class Batch(Base):
    """
    Received goods. Immutable after receipt; quantities move through LocationCell rows.
    expiry_date is None for non-perishable goods.
    """
    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    batch_code: Mapped[str] = mapped_column(String(40), nullable=False)

    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    acquisition_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_sell_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("product_id", "batch_code", name="uq_batches_product_batch_code"),
        CheckConstraint("quantity_received > 0", name="ck_batches_quantity_received_positive"),
        Index("ix_batches_product_expiry_acquisition", "product_id", "expiry_date", "acquisition_date"),
    )
