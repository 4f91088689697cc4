from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stockledger.models.reorder_alert import AlertKind
from stockledger.models.stock_movement import MovementType
from stockledger.schemas.common import PaginationMeta
from stockledger.services.demand_classifier import VelocityClass


class ReceiveBatchIn(BaseModel):
    product_id: str
    location_code: str = Field(..., min_length=1, max_length=30)
    quantity: int = Field(gt=0, description="Units placed at the initial location")
    quantity_received: int | None = Field(default=None, gt=0, description="Defaults to quantity")
    expiry_date: date | None = Field(default=None, description="Omit for non-perishable goods")
    acquisition_date: date | None = None
    unit_sell_price: Decimal | None = Field(default=None, ge=0)
    batch_code: str | None = Field(default=None, max_length=40)
    use_default_shelf_life: bool = False
    actor: str = Field(..., min_length=1, max_length=120)

    @model_validator(mode="after")
    def validate_quantities(self) -> "ReceiveBatchIn":
        if self.quantity_received is not None and self.quantity > self.quantity_received:
            raise ValueError("quantity cannot exceed quantity_received")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "product-id",
                "location_code": "WAREHOUSE",
                "quantity": 80,
                "quantity_received": 80,
                "expiry_date": "2027-03-31",
                "unit_sell_price": 4.5,
                "actor": "clerk-01",
            }
        }
    )


class BatchOut(BaseModel):
    id: str
    product_id: str
    batch_code: str
    expiry_date: date | None = None
    acquisition_date: date
    quantity_received: int
    unit_sell_price: float | None = None


class DeductIn(BaseModel):
    product_id: str
    quantity: int = Field(ge=0)
    actor: str = Field(..., min_length=1, max_length=120)
    location_code: str | None = Field(default=None, description="Defaults to the display location")
    reference_id: str | None = Field(default=None, max_length=36)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "product-id",
                "quantity": 5,
                "actor": "cashier-02",
                "reference_id": "bill-20261019-0042",
            }
        }
    )


class TransferIn(BaseModel):
    product_id: str
    from_location_code: str = Field(..., min_length=1, max_length=30)
    to_location_code: str = Field(..., min_length=1, max_length=30)
    quantity: int
    actor: str = Field(..., min_length=1, max_length=120)
    note: str | None = Field(default=None, max_length=255)


class ReplenishIn(BaseModel):
    actor: str = Field(..., min_length=1, max_length=120)


class LocationLimitsIn(BaseModel):
    product_id: str
    location_code: str = Field(..., min_length=1, max_length=30)
    min_threshold: int = Field(ge=0)
    capacity: int | None = Field(default=None, gt=0, description="Omit to keep the current capacity")


class LocationLimitsOut(BaseModel):
    product_id: str
    location_code: str
    min_threshold: int
    capacity: int | None = None


class PurgeExpiredIn(BaseModel):
    actor: str = Field(..., min_length=1, max_length=120)


class StockMovementOut(BaseModel):
    id: str
    batch_id: str
    product_id: str
    from_location_id: str | None = None
    to_location_id: str | None = None
    quantity: int
    movement_type: MovementType
    actor: str
    reference_id: str | None = None
    note: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class StockMovementListOut(BaseModel):
    items: list[StockMovementOut]
    pagination: PaginationMeta


class MovementsOut(BaseModel):
    items: list[StockMovementOut]
    total_quantity: int


class PurgeExpiredOut(BaseModel):
    items: list[StockMovementOut]
    units_removed: int


class StockSummaryOut(BaseModel):
    product_id: str
    per_location: dict[str, int]
    total_quantity: int
    available_quantity: int = Field(description="Total excluding expired batches")


class ReorderStatusOut(BaseModel):
    product_id: str
    velocity_class: VelocityClass
    threshold: int
    alert_warranted: bool
    alert_kind: AlertKind | None = None
    total_quantity: int
    estimated_capacity: int
    transaction_count: int
    units_sold: int


class ExpiringStockOut(BaseModel):
    product_id: str
    batch_id: str
    batch_code: str
    location_code: str
    quantity: int
    expiry_date: date
    days_to_expiry: int


class LowStockOut(BaseModel):
    product_id: str
    location_code: str
    quantity: int
    min_threshold: int
    capacity: int | None = None
