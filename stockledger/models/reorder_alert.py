import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class AlertKind(str, enum.Enum):
    SHELF_RESTOCK = "SHELF_RESTOCK"
    NEW_BATCH_ORDER = "NEW_BATCH_ORDER"


class ReorderAlert(Base):
    __tablename__ = "reorder_alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    location_id: Mapped[str] = mapped_column(String(36), ForeignKey("locations.id"), nullable=False, index=True)
    observed_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    alert_kind: Mapped[AlertKind] = mapped_column(
        Enum(AlertKind, name="alert_kind", native_enum=False, length=30),
        nullable=False,
    )
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    velocity_class: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_reorder_alerts_product_location_created_at", "product_id", "location_id", "created_at"),
    )
