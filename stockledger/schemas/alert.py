from datetime import datetime

from pydantic import BaseModel, ConfigDict

from stockledger.models.reorder_alert import AlertKind
from stockledger.schemas.common import PaginationMeta


class ReorderAlertOut(BaseModel):
    id: str
    product_id: str
    location_id: str
    observed_quantity: int
    alert_kind: AlertKind
    threshold: int
    velocity_class: str
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ReorderAlertListOut(BaseModel):
    items: list[ReorderAlertOut]
    pagination: PaginationMeta


class RetractOut(BaseModel):
    retracted: int
