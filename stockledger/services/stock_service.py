"""Service-call surface of the stock ledger.

Every mutating operation runs in one unit of work: the cell updates, their
movement rows and any automatic display replenishment commit together or not
at all. Reorder alerts are derived afterwards in a separate, best-effort
unit of work so an alerting failure never undoes a committed stock change.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.core.config import Settings, settings
from stockledger.core.errors import (
    CapacityExceededError,
    InsufficientStockError,
    InvalidTransferError,
    NotFoundError,
    StockLedgerError,
    ValidationError,
)
from stockledger.core.id_utils import generate_batch_code
from stockledger.core.money import to_money
from stockledger.db.unit_of_work import unit_of_work
from stockledger.models.batch import Batch
from stockledger.models.location import Location, LocationCell, LocationKind
from stockledger.models.reorder_alert import AlertKind, ReorderAlert
from stockledger.models.stock_movement import MovementType, StockMovement
from stockledger.services.alert_ledger import list_open_alerts, record_alert, retract_resolved
from stockledger.services.allocation_policy import plan_draws
from stockledger.services.batch_store import BatchReader, SqlBatchReader
from stockledger.services.demand_classifier import VelocityClass, classify_velocity
from stockledger.services.location_ledger import (
    LocationLimits,
    LockedStock,
    effective_limits,
    get_quantities_by_location,
    lock_product,
    record_movement,
    require_location,
    require_product,
)
from stockledger.services.reorder_calculator import ReorderPolicy, decide_reorder, estimate_capacity
from stockledger.services.replenishment_policy import move_between, replenish_if_needed
from stockledger.services.sales_aggregate import SalesReader, SqlSalesReader

logger = logging.getLogger("stockledger.ledger")


@dataclass(frozen=True)
class StockSummary:
    product_id: str
    per_location: dict[str, int]
    total_quantity: int
    available_quantity: int


@dataclass(frozen=True)
class ReorderStatus:
    product_id: str
    velocity_class: VelocityClass
    threshold: int
    alert_warranted: bool
    alert_kind: AlertKind | None
    total_quantity: int
    estimated_capacity: int
    transaction_count: int
    units_sold: int


@dataclass(frozen=True)
class ExpiringStock:
    product_id: str
    batch_id: str
    batch_code: str
    location_code: str
    quantity: int
    expiry_date: date
    days_to_expiry: int


@dataclass(frozen=True)
class LowStockItem:
    product_id: str
    location_code: str
    quantity: int
    min_threshold: int
    capacity: int | None = None


@dataclass
class PurgeResult:
    movements: list[StockMovement] = field(default_factory=list)
    units_removed: int = 0


def _clock(today: date | None, now: datetime | None) -> tuple[date, datetime]:
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return today or now.date(), now


def _log_event(event: str, **fields) -> None:
    logger.info(json.dumps({"event": event, **fields}, default=str))


def _backing_location(db: Session, primary: Location, config: Settings) -> Location | None:
    if primary.kind == LocationKind.WAREHOUSE:
        return None
    backing = require_location(db, code=config.warehouse_location_code)
    return None if backing.id == primary.id else backing


def deduct(
    db: Session,
    *,
    product_id: str,
    quantity: int,
    actor: str,
    location_code: str | None = None,
    reference_id: str | None = None,
    config: Settings = settings,
    today: date | None = None,
    now: datetime | None = None,
    sales_reader: SalesReader | None = None,
) -> list[StockMovement]:
    """Deducts a sale from the primary location, falling back to the warehouse.

    All-or-nothing: when the non-expired stock of both locations cannot cover
    `quantity`, nothing is mutated and InsufficientStockError carries the
    satisfiable total. A zero quantity is a no-op.
    """
    if quantity < 0:
        raise ValidationError("Deduction quantity cannot be negative")
    if quantity == 0:
        return []
    today, now = _clock(today, now)
    reference_id = reference_id or str(uuid.uuid4())

    with unit_of_work(db, lock_timeout_ms=config.lock_timeout_ms):
        lock_product(db, product_id)
        primary = require_location(db, code=location_code or config.display_location_code)
        backing = _backing_location(db, primary, config)
        sources = [primary] if backing is None else [primary, backing]
        stock = LockedStock(db, product_id=product_id, locations=sources, config=config)

        available = sum(stock.satisfiable_at(location.id, today=today) for location in sources)
        if available < quantity:
            raise InsufficientStockError(
                available=available,
                requested=quantity,
                product_id=product_id,
                location_code=primary.code,
            )

        movements: list[StockMovement] = []
        remaining = quantity
        for source in sources:
            if remaining <= 0:
                break
            draws, remaining = plan_draws(stock.candidates_at(source.id, today=today), remaining)
            for draw in draws:
                stock.apply_delta(stock.cell_by_id(draw.cell_id), -draw.quantity)
                movements.append(
                    record_movement(
                        db,
                        batch_id=draw.batch_id,
                        product_id=product_id,
                        from_location_id=source.id,
                        to_location_id=None,
                        quantity=draw.quantity,
                        movement_type=MovementType.SALE_DEDUCTION,
                        actor=actor,
                        reference_id=reference_id,
                        now=now,
                    )
                )

        replenished: list[StockMovement] = []
        if primary.kind == LocationKind.DISPLAY and backing is not None:
            replenished = replenish_if_needed(
                stock,
                display=primary,
                warehouse=backing,
                actor=actor,
                today=today,
                now=now,
                reference_id=reference_id,
            )
        db.flush()

    _log_event(
        "stock.deducted",
        product_id=product_id,
        location=primary.code,
        qty=quantity,
        actor=actor,
        reference_id=reference_id,
        batches=len(movements),
        replenished_qty=sum(m.quantity for m in replenished),
    )
    refresh_reorder_alert(db, product_id=product_id, config=config, now=now, sales_reader=sales_reader)
    return movements + replenished


def transfer(
    db: Session,
    *,
    product_id: str,
    from_location_code: str,
    to_location_code: str,
    quantity: int,
    actor: str,
    note: str | None = None,
    reference_id: str | None = None,
    config: Settings = settings,
    today: date | None = None,
    now: datetime | None = None,
) -> list[StockMovement]:
    if from_location_code.strip().upper() == to_location_code.strip().upper():
        raise InvalidTransferError("Source and destination locations must differ")
    if quantity <= 0:
        raise InvalidTransferError("Transfer quantity must be positive")
    today, now = _clock(today, now)
    reference_id = reference_id or str(uuid.uuid4())

    with unit_of_work(db, lock_timeout_ms=config.lock_timeout_ms):
        lock_product(db, product_id)
        source = require_location(db, code=from_location_code)
        destination = require_location(db, code=to_location_code)
        stock = LockedStock(db, product_id=product_id, locations=[source, destination], config=config)

        available = stock.satisfiable_at(source.id, today=today)
        if available < quantity:
            raise InsufficientStockError(
                available=available,
                requested=quantity,
                product_id=product_id,
                location_code=source.code,
            )
        if destination.is_capacity_bounded:
            capacity = stock.limits_at(destination.id).capacity
            current = stock.total_at(destination.id)
            if capacity is not None and current + quantity > capacity:
                raise CapacityExceededError(
                    capacity=capacity,
                    current=current,
                    requested=quantity,
                    product_id=product_id,
                    location_code=destination.code,
                )

        movement_type = MovementType.TRANSFER
        if source.kind == LocationKind.WAREHOUSE and destination.kind == LocationKind.DISPLAY:
            movement_type = MovementType.WAREHOUSE_TO_DISPLAY
        movements = move_between(
            stock,
            source=source,
            destination=destination,
            quantity=quantity,
            movement_type=movement_type,
            actor=actor,
            today=today,
            now=now,
            reference_id=reference_id,
            note=note,
        )
        db.flush()

    _log_event(
        "stock.transferred",
        product_id=product_id,
        source=source.code,
        destination=destination.code,
        qty=quantity,
        actor=actor,
        reference_id=reference_id,
    )
    return movements


def receive_batch(
    db: Session,
    *,
    product_id: str,
    location_code: str,
    quantity: int,
    actor: str,
    quantity_received: int | None = None,
    expiry_date: date | None = None,
    acquisition_date: date | None = None,
    unit_sell_price: Decimal | float | None = None,
    batch_code: str | None = None,
    use_default_shelf_life: bool = False,
    config: Settings = settings,
    today: date | None = None,
    now: datetime | None = None,
    sales_reader: SalesReader | None = None,
) -> Batch:
    """Records a new batch and places `quantity` of it at the initial location.

    `quantity_received` defaults to `quantity`; the remainder, if any, is
    expected to be placed later by transfers. Without an expiry date the batch
    is non-perishable unless `use_default_shelf_life` asks for the configured
    shelf life.
    """
    today, now = _clock(today, now)
    quantity_received = quantity if quantity_received is None else quantity_received
    acquisition_date = acquisition_date or today
    if quantity <= 0:
        raise ValidationError("Received quantity must be positive")
    if quantity > quantity_received:
        raise ValidationError("Placed quantity cannot exceed the quantity received")
    if expiry_date is None and use_default_shelf_life:
        expiry_date = acquisition_date + timedelta(days=config.default_batch_shelf_life_days)
    if expiry_date is not None and expiry_date < acquisition_date:
        raise ValidationError("Expiry date cannot be before the acquisition date")
    if unit_sell_price is not None and to_money(unit_sell_price) < 0:
        raise ValidationError("Unit sell price cannot be negative")

    with unit_of_work(db, lock_timeout_ms=config.lock_timeout_ms):
        lock_product(db, product_id)
        location = require_location(db, code=location_code)
        code = (batch_code or "").strip() or generate_batch_code(acquisition_date)
        duplicate = db.execute(
            select(Batch.id).where(Batch.product_id == product_id, Batch.batch_code == code)
        ).scalar_one_or_none()
        if duplicate:
            raise ValidationError(f"Batch code {code} already exists for this product")

        stock = LockedStock(db, product_id=product_id, locations=[location], config=config)
        batch = Batch(
            id=str(uuid.uuid4()),
            product_id=product_id,
            batch_code=code,
            expiry_date=expiry_date,
            acquisition_date=acquisition_date,
            quantity_received=quantity_received,
            unit_sell_price=to_money(unit_sell_price) if unit_sell_price is not None else None,
        )
        db.add(batch)
        db.flush()

        cell = stock.get_or_create_cell(batch, location.id)
        stock.apply_delta(cell, quantity)
        record_movement(
            db,
            batch_id=batch.id,
            product_id=product_id,
            from_location_id=None,
            to_location_id=location.id,
            quantity=quantity,
            movement_type=MovementType.RECEIPT,
            actor=actor,
            reference_id=batch.id,
            now=now,
        )
        db.flush()
        batch_id = batch.id

    _log_event(
        "stock.received",
        product_id=product_id,
        batch_id=batch_id,
        batch_code=code,
        location=location.code,
        qty=quantity,
        quantity_received=quantity_received,
        expiry_date=expiry_date.isoformat() if expiry_date else None,
        actor=actor,
    )
    refresh_reorder_alert(db, product_id=product_id, config=config, now=now, sales_reader=sales_reader)
    return batch


def list_batches(db: Session, *, product_id: str, batch_reader: BatchReader | None = None) -> list[Batch]:
    """Every batch ever received for a product, oldest acquisition first."""
    require_product(db, product_id)
    return (batch_reader or SqlBatchReader(db)).batches_for_product(product_id)


def get_stock_summary(
    db: Session,
    *,
    product_id: str,
    config: Settings = settings,
    today: date | None = None,
) -> StockSummary:
    today, _ = _clock(today, None)
    require_product(db, product_id)
    locations = db.execute(select(Location).order_by(Location.code.asc())).scalars().all()
    physical = get_quantities_by_location(db, product_id=product_id)
    sellable = get_quantities_by_location(db, product_id=product_id, today=today)
    per_location = {
        location.code: physical.get(location.id, 0)
        for location in locations
        if location.is_active or physical.get(location.id, 0)
    }
    return StockSummary(
        product_id=product_id,
        per_location=per_location,
        total_quantity=sum(physical.values()),
        available_quantity=sum(sellable.values()),
    )


def _display_capacity(db: Session, *, product_id: str, config: Settings) -> int:
    display = require_location(db, code=config.display_location_code)
    cells = db.execute(
        select(LocationCell).where(
            LocationCell.product_id == product_id,
            LocationCell.location_id == display.id,
        )
    ).scalars().all()
    capacity = effective_limits(display, list(cells), config).capacity
    return capacity if capacity is not None else config.display_default_capacity


def get_reorder_status(
    db: Session,
    *,
    product_id: str,
    config: Settings = settings,
    now: datetime | None = None,
    sales_reader: SalesReader | None = None,
    batch_reader: BatchReader | None = None,
    estimated_capacity: int | None = None,
) -> ReorderStatus:
    """
    S is the non-expired quantity across every location. C is, in order, the
    caller's override, the product's configured stock capacity, or the
    estimate derived from the peak stock ever held and the display capacity.
    """
    today, now = _clock(None, now)
    product = require_product(db, product_id)
    sales_reader = sales_reader or SqlSalesReader(db)
    batch_reader = batch_reader or SqlBatchReader(db)
    policy = ReorderPolicy.from_settings(config)

    total = sum(get_quantities_by_location(db, product_id=product_id, today=today).values())
    capacity = estimated_capacity or product.stock_capacity
    if not capacity:
        on_hand = sum(get_quantities_by_location(db, product_id=product_id).values())
        capacity = estimate_capacity(
            historical_peak_quantity=max(batch_reader.peak_received_quantity(product_id), on_hand),
            display_capacity=_display_capacity(db, product_id=product_id, config=config),
            policy=policy,
        )

    sample = sales_reader.sample(product_id, window_days=config.sales_window_days, now=now)
    decision = decide_reorder(
        total_quantity=total,
        estimated_capacity=capacity,
        velocity_class=classify_velocity(sample),
        policy=policy,
    )
    return ReorderStatus(
        product_id=product_id,
        velocity_class=decision.velocity_class,
        threshold=decision.threshold,
        alert_warranted=decision.alert_warranted,
        alert_kind=decision.alert_kind,
        total_quantity=decision.total_quantity,
        estimated_capacity=decision.estimated_capacity,
        transaction_count=sample.transaction_count,
        units_sold=sample.units_sold,
    )


def refresh_reorder_alert(
    db: Session,
    *,
    product_id: str,
    config: Settings = settings,
    now: datetime | None = None,
    sales_reader: SalesReader | None = None,
) -> ReorderAlert | None:
    """Records an alert if one is warranted. Failures are logged, never raised."""
    _, now = _clock(None, now)
    try:
        with unit_of_work(db):
            status = get_reorder_status(
                db, product_id=product_id, config=config, now=now, sales_reader=sales_reader
            )
            if not status.alert_warranted or status.alert_kind is None:
                return None
            display = require_location(db, code=config.display_location_code)
            alert, _created = record_alert(
                db,
                product_id=product_id,
                location_id=display.id,
                observed_quantity=status.total_quantity,
                kind=status.alert_kind,
                threshold=status.threshold,
                velocity_class=status.velocity_class.value,
                now=now,
            )
            db.flush()
        return alert
    except Exception as exc:
        # Runs after the stock change committed; nothing here may reach the caller.
        logger.warning(
            json.dumps(
                {
                    "event": "alert.failed",
                    "product_id": product_id,
                    "code": exc.code if isinstance(exc, StockLedgerError) else "unexpected_error",
                    "error": exc.__class__.__name__,
                }
            )
        )
        return None


def replenish_display(
    db: Session,
    *,
    product_id: str,
    actor: str,
    config: Settings = settings,
    today: date | None = None,
    now: datetime | None = None,
) -> list[StockMovement]:
    """Runs the automatic shelf restock rule on demand."""
    today, now = _clock(today, now)
    with unit_of_work(db, lock_timeout_ms=config.lock_timeout_ms):
        lock_product(db, product_id)
        display = require_location(db, code=config.display_location_code)
        warehouse = require_location(db, code=config.warehouse_location_code)
        stock = LockedStock(db, product_id=product_id, locations=[display, warehouse], config=config)
        movements = replenish_if_needed(
            stock,
            display=display,
            warehouse=warehouse,
            actor=actor,
            today=today,
            now=now,
            reference_id=str(uuid.uuid4()),
        )
        db.flush()
    return movements


def set_location_limits(
    db: Session,
    *,
    product_id: str,
    location_code: str,
    min_threshold: int,
    capacity: int | None = None,
    config: Settings = settings,
) -> LocationLimits:
    if min_threshold < 0:
        raise ValidationError("Minimum threshold cannot be negative")
    if capacity is not None and capacity <= 0:
        raise ValidationError("Capacity must be positive")

    with unit_of_work(db, lock_timeout_ms=config.lock_timeout_ms):
        lock_product(db, product_id)
        location = require_location(db, code=location_code)
        if capacity is not None and not location.is_capacity_bounded:
            raise ValidationError(f"Location {location.code} is not capacity-bounded")
        stock = LockedStock(db, product_id=product_id, locations=[location], config=config)
        cells = stock.cells_at(location.id)
        if not cells:
            raise NotFoundError(f"Product {product_id} has never been stocked at {location.code}")

        # An omitted capacity keeps the current one; bounded locations always have one.
        if capacity is None and location.is_capacity_bounded:
            capacity = stock.limits_at(location.id).capacity
        if capacity is not None and min_threshold > capacity:
            raise ValidationError("Minimum threshold cannot exceed capacity")

        current = stock.total_at(location.id)
        if capacity is not None and current > capacity:
            raise CapacityExceededError(
                capacity=capacity,
                current=current,
                requested=0,
                product_id=product_id,
                location_code=location.code,
            )
        for cell in cells:
            cell.min_threshold = min_threshold
            cell.capacity = capacity
    return LocationLimits(min_threshold=min_threshold, capacity=capacity)


def purge_expired(
    db: Session,
    *,
    actor: str,
    config: Settings = settings,
    today: date | None = None,
    now: datetime | None = None,
) -> PurgeResult:
    """Zeroes expired stock in place. Cells and batches are kept for history."""
    today, now = _clock(today, now)
    result = PurgeResult()
    reference_id = str(uuid.uuid4())
    expired = (
        Batch.expiry_date.is_not(None),
        Batch.expiry_date < today,
        LocationCell.current_quantity > 0,
    )
    with unit_of_work(db, lock_timeout_ms=config.lock_timeout_ms):
        affected = db.execute(
            select(LocationCell.product_id)
            .join(Batch, Batch.id == LocationCell.batch_id)
            .where(*expired)
            .distinct()
        ).scalars().all()
        for affected_id in sorted(affected):
            lock_product(db, affected_id)
        cells = db.execute(
            select(LocationCell)
            .join(Batch, Batch.id == LocationCell.batch_id)
            .where(*expired)
            .order_by(LocationCell.id)
            .with_for_update(of=LocationCell)
        ).scalars().all()
        for cell in cells:
            result.movements.append(
                record_movement(
                    db,
                    batch_id=cell.batch_id,
                    product_id=cell.product_id,
                    from_location_id=cell.location_id,
                    to_location_id=None,
                    quantity=cell.current_quantity,
                    movement_type=MovementType.EXPIRY_REMOVAL,
                    actor=actor,
                    reference_id=reference_id,
                    note="Expired stock removed",
                    now=now,
                )
            )
            result.units_removed += cell.current_quantity
            cell.current_quantity = 0
        db.flush()
        product_ids = sorted({cell.product_id for cell in cells})

    _log_event(
        "stock.expired_purged",
        cells=len(result.movements),
        units=result.units_removed,
        products=len(product_ids),
        actor=actor,
    )
    for product_id in product_ids:
        refresh_reorder_alert(db, product_id=product_id, config=config, now=now)
    return result


def expiring_batches(
    db: Session,
    *,
    within_days: int,
    product_id: str | None = None,
    today: date | None = None,
) -> list[ExpiringStock]:
    if within_days < 0:
        raise ValidationError("within_days cannot be negative")
    today, _ = _clock(today, None)
    horizon = today + timedelta(days=within_days)
    stmt = (
        select(LocationCell, Batch, Location)
        .join(Batch, Batch.id == LocationCell.batch_id)
        .join(Location, Location.id == LocationCell.location_id)
        .where(
            Batch.expiry_date.is_not(None),
            Batch.expiry_date >= today,
            Batch.expiry_date <= horizon,
            LocationCell.current_quantity > 0,
        )
    )
    if product_id:
        stmt = stmt.where(LocationCell.product_id == product_id)
    rows = db.execute(
        stmt.order_by(Batch.expiry_date.asc(), Batch.acquisition_date.asc(), Location.code.asc())
    ).all()
    return [
        ExpiringStock(
            product_id=cell.product_id,
            batch_id=batch.id,
            batch_code=batch.batch_code,
            location_code=location.code,
            quantity=cell.current_quantity,
            expiry_date=batch.expiry_date,
            days_to_expiry=(batch.expiry_date - today).days,
        )
        for cell, batch, location in rows
    ]


def list_movements(
    db: Session,
    *,
    product_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockMovement], int]:
    count_stmt = select(func.count(StockMovement.id))
    stmt = select(StockMovement)
    if product_id:
        count_stmt = count_stmt.where(StockMovement.product_id == product_id)
        stmt = stmt.where(StockMovement.product_id == product_id)
    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        stmt.order_by(StockMovement.created_at.desc(), StockMovement.id).offset(offset).limit(limit)
    ).scalars().all()
    return list(rows), total


def low_stock(db: Session, *, location_code: str, config: Settings = settings) -> list[LowStockItem]:
    """Products whose quantity at a location is at or below that location's floor."""
    location = require_location(db, code=location_code)
    cells = db.execute(
        select(LocationCell)
        .where(LocationCell.location_id == location.id)
        .order_by(LocationCell.product_id, LocationCell.id)
    ).scalars().all()

    by_product: dict[str, list[LocationCell]] = {}
    for cell in cells:
        by_product.setdefault(cell.product_id, []).append(cell)

    items: list[LowStockItem] = []
    for product_id, product_cells in by_product.items():
        limits = effective_limits(location, product_cells, config)
        quantity = sum(cell.current_quantity for cell in product_cells)
        if quantity <= limits.min_threshold:
            items.append(
                LowStockItem(
                    product_id=product_id,
                    location_code=location.code,
                    quantity=quantity,
                    min_threshold=limits.min_threshold,
                    capacity=limits.capacity,
                )
            )
    return sorted(items, key=lambda item: (item.quantity, item.product_id))


def list_alerts(
    db: Session,
    *,
    config: Settings = settings,
    now: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[ReorderAlert], int]:
    """Open alerts inside the lookback window, after retracting resolved ones."""
    _, now = _clock(None, now)
    with unit_of_work(db):
        retract_resolved(db, now=now, config=config)
    return list_open_alerts(
        db,
        now=now,
        lookback_days=config.alert_lookback_days,
        limit=limit,
        offset=offset,
    )


def retract_resolved_alerts(db: Session, *, config: Settings = settings, now: datetime | None = None) -> int:
    _, now = _clock(None, now)
    with unit_of_work(db):
        return retract_resolved(db, now=now, config=config)
