import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class LocationKind(str, enum.Enum):
    WAREHOUSE = "WAREHOUSE"
    DISPLAY = "DISPLAY"
    ONLINE = "ONLINE"


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    kind: Mapped[LocationKind] = mapped_column(
        Enum(LocationKind, name="location_kind", native_enum=False, length=20),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    # Limits given to cells created lazily at this location.
    default_capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    default_min_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_capacity_bounded(self) -> bool:
        return self.kind == LocationKind.DISPLAY


class LocationCell(Base):
    """
    Current quantity of one batch at one location. Zero-quantity cells are kept
    to preserve movement history.
    """
    __tablename__ = "location_cells"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    batch_id: Mapped[str] = mapped_column(String(36), ForeignKey("batches.id"), nullable=False, index=True)
    location_id: Mapped[str] = mapped_column(String(36), ForeignKey("locations.id"), nullable=False, index=True)
    # Denormalised from Batch so per-product reads and locks hit one table.
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    current_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    min_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("batch_id", "location_id", name="uq_location_cells_batch_location"),
        CheckConstraint("current_quantity >= 0", name="ck_location_cells_quantity_non_negative"),
        Index("ix_location_cells_product_location", "product_id", "location_id"),
    )
