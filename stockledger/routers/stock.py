from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.config import settings
from stockledger.core.deps import get_db
from stockledger.schemas.common import pagination
from stockledger.schemas.stock import (
    BatchOut,
    DeductIn,
    ExpiringStockOut,
    LocationLimitsIn,
    LocationLimitsOut,
    LowStockOut,
    MovementsOut,
    PurgeExpiredIn,
    PurgeExpiredOut,
    ReceiveBatchIn,
    ReorderStatusOut,
    ReplenishIn,
    StockMovementListOut,
    StockMovementOut,
    StockSummaryOut,
    TransferIn,
)
from stockledger.services import stock_service

router = APIRouter(prefix="/stock", tags=["stock"])


def _movements_out(movements) -> MovementsOut:
    items = [StockMovementOut.model_validate(movement) for movement in movements]
    return MovementsOut(items=items, total_quantity=sum(item.quantity for item in items))


def _batch_out(batch) -> BatchOut:
    return BatchOut(
        id=batch.id,
        product_id=batch.product_id,
        batch_code=batch.batch_code,
        expiry_date=batch.expiry_date,
        acquisition_date=batch.acquisition_date,
        quantity_received=batch.quantity_received,
        unit_sell_price=float(batch.unit_sell_price) if batch.unit_sell_price is not None else None,
    )


@router.post(
    "/batches",
    response_model=BatchOut,
    status_code=201,
    summary="Receive a batch into a location",
    responses=error_responses(400, 404, 409, 422, 500, 503),
)
def receive_batch(payload: ReceiveBatchIn, db: Session = Depends(get_db)):
    batch = stock_service.receive_batch(
        db,
        product_id=payload.product_id,
        location_code=payload.location_code,
        quantity=payload.quantity,
        quantity_received=payload.quantity_received,
        expiry_date=payload.expiry_date,
        acquisition_date=payload.acquisition_date,
        unit_sell_price=payload.unit_sell_price,
        batch_code=payload.batch_code,
        use_default_shelf_life=payload.use_default_shelf_life,
        actor=payload.actor,
    )
    return _batch_out(batch)


@router.post(
    "/deductions",
    response_model=MovementsOut,
    summary="Deduct stock for a sale",
    responses=error_responses(400, 404, 409, 422, 500, 503),
)
def deduct_stock(payload: DeductIn, db: Session = Depends(get_db)):
    movements = stock_service.deduct(
        db,
        product_id=payload.product_id,
        quantity=payload.quantity,
        actor=payload.actor,
        location_code=payload.location_code,
        reference_id=payload.reference_id,
    )
    return _movements_out(movements)


@router.post(
    "/transfers",
    response_model=MovementsOut,
    summary="Transfer stock between two locations",
    responses=error_responses(400, 404, 409, 422, 500, 503),
)
def transfer_stock(payload: TransferIn, db: Session = Depends(get_db)):
    movements = stock_service.transfer(
        db,
        product_id=payload.product_id,
        from_location_code=payload.from_location_code,
        to_location_code=payload.to_location_code,
        quantity=payload.quantity,
        actor=payload.actor,
        note=payload.note,
    )
    return _movements_out(movements)


@router.post(
    "/replenishments/{product_id}",
    response_model=MovementsOut,
    summary="Restock the display location from the warehouse if it is low",
    responses=error_responses(400, 404, 409, 422, 500, 503),
)
def replenish_display(product_id: str, payload: ReplenishIn, db: Session = Depends(get_db)):
    movements = stock_service.replenish_display(db, product_id=product_id, actor=payload.actor)
    return _movements_out(movements)


@router.put(
    "/limits",
    response_model=LocationLimitsOut,
    summary="Set a product's minimum threshold and capacity at a location",
    responses=error_responses(400, 404, 409, 422, 500, 503),
)
def set_limits(payload: LocationLimitsIn, db: Session = Depends(get_db)):
    limits = stock_service.set_location_limits(
        db,
        product_id=payload.product_id,
        location_code=payload.location_code,
        min_threshold=payload.min_threshold,
        capacity=payload.capacity,
    )
    return LocationLimitsOut(
        product_id=payload.product_id,
        location_code=payload.location_code.strip().upper(),
        min_threshold=limits.min_threshold,
        capacity=limits.capacity,
    )


@router.get(
    "/movements",
    response_model=StockMovementListOut,
    summary="List stock movements",
    responses=error_responses(422, 500),
)
def list_movements(
    product_id: str | None = Query(default=None, description="Optional product filter"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    rows, total = stock_service.list_movements(db, product_id=product_id, limit=limit, offset=offset)
    items = [StockMovementOut.model_validate(row) for row in rows]
    return StockMovementListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/expiring",
    response_model=list[ExpiringStockOut],
    summary="List stock expiring within a number of days",
    responses=error_responses(400, 422, 500),
)
def list_expiring(
    within_days: int = Query(default=30, ge=0, le=3650),
    product_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = stock_service.expiring_batches(db, within_days=within_days, product_id=product_id)
    return [ExpiringStockOut(**asdict(row)) for row in rows]


@router.post(
    "/expired/purge",
    response_model=PurgeExpiredOut,
    summary="Zero out expired stock in place",
    responses=error_responses(422, 500, 503),
)
def purge_expired(payload: PurgeExpiredIn, db: Session = Depends(get_db)):
    result = stock_service.purge_expired(db, actor=payload.actor)
    return PurgeExpiredOut(
        items=[StockMovementOut.model_validate(movement) for movement in result.movements],
        units_removed=result.units_removed,
    )


@router.get(
    "/low-stock",
    response_model=list[LowStockOut],
    summary="List products at or below the minimum threshold of a location",
    responses=error_responses(400, 404, 422, 500),
)
def list_low_stock(
    location_code: str | None = Query(default=None, description="Defaults to the display location"),
    db: Session = Depends(get_db),
):
    code = location_code or settings.display_location_code
    return [LowStockOut(**asdict(item)) for item in stock_service.low_stock(db, location_code=code)]


@router.get(
    "/{product_id}/summary",
    response_model=StockSummaryOut,
    summary="Per-location and total quantity for a product",
    responses=error_responses(404, 422, 500),
)
def get_summary(product_id: str, db: Session = Depends(get_db)):
    summary = stock_service.get_stock_summary(db, product_id=product_id)
    return StockSummaryOut(**asdict(summary))


@router.get(
    "/{product_id}/batches",
    response_model=list[BatchOut],
    summary="Batches received for a product, oldest acquisition first",
    responses=error_responses(404, 422, 500),
)
def list_batches(product_id: str, db: Session = Depends(get_db)):
    return [_batch_out(batch) for batch in stock_service.list_batches(db, product_id=product_id)]


@router.get(
    "/{product_id}/reorder-status",
    response_model=ReorderStatusOut,
    summary="Velocity class, reorder threshold and alert decision for a product",
    responses=error_responses(404, 422, 500),
)
def get_reorder_status(product_id: str, db: Session = Depends(get_db)):
    status = stock_service.get_reorder_status(db, product_id=product_id)
    return ReorderStatusOut(**asdict(status))
