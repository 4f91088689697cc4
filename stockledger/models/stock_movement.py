import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class MovementType(str, enum.Enum):
    RECEIPT = "RECEIPT"
    SALE_DEDUCTION = "SALE_DEDUCTION"
    WAREHOUSE_TO_DISPLAY = "WAREHOUSE_TO_DISPLAY"
    TRANSFER = "TRANSFER"
    EXPIRY_REMOVAL = "EXPIRY_REMOVAL"


class StockMovement(Base):
    """
    Append-only audit row, one per cell mutation. from_location_id is empty for
    receipts; to_location_id is empty when stock leaves the ledger (sale, expiry).
    """
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    batch_id: Mapped[str] = mapped_column(String(36), ForeignKey("batches.id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    from_location_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("locations.id"), nullable=True)
    to_location_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("locations.id"), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    movement_type: Mapped[MovementType] = mapped_column(
        Enum(MovementType, name="movement_type", native_enum=False, length=30),
        nullable=False,
    )
    actor: Mapped[str] = mapped_column(String(120), nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # groups one operation's rows
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_stock_movements_product_created_at", "product_id", "created_at"),
        Index("ix_stock_movements_reference_id", "reference_id"),
    )
