import json
import logging
from datetime import date, datetime

from stockledger.core.errors import InsufficientStockError
from stockledger.models.location import Location
from stockledger.models.stock_movement import MovementType, StockMovement
from stockledger.services.allocation_policy import plan_draws
from stockledger.services.location_ledger import LockedStock, record_movement

logger = logging.getLogger("stockledger.ledger")

AUTO_RESTOCK_NOTE = "Automatic warehouse-to-display restock"


def replenishment_amount(
    *,
    display_quantity: int,
    min_threshold: int,
    capacity: int,
    warehouse_available: int,
) -> int:
    """Units to move so the display is refilled up to, never past, its capacity."""
    if display_quantity > min_threshold or warehouse_available <= 0:
        return 0
    return max(0, min(capacity - display_quantity, warehouse_available))


def move_between(
    stock: LockedStock,
    *,
    source: Location,
    destination: Location,
    quantity: int,
    movement_type: MovementType,
    actor: str,
    today: date,
    now: datetime,
    reference_id: str | None = None,
    note: str | None = None,
) -> list[StockMovement]:
    """Moves `quantity` between two locked locations, batch by batch, in draw order.

    Each batch keeps its identity at the destination: the matching cell is
    created on first placement. One movement row is written per batch moved.
    """
    draws, remaining = plan_draws(stock.candidates_at(source.id, today=today), quantity)
    if remaining > 0:
        raise InsufficientStockError(
            available=quantity - remaining,
            requested=quantity,
            product_id=stock.product_id,
            location_code=source.code,
        )

    movements: list[StockMovement] = []
    for draw in draws:
        source_cell = stock.cell_by_id(draw.cell_id)
        batch = stock.batch(draw.batch_id)
        destination_cell = stock.get_or_create_cell(batch, destination.id)
        stock.apply_delta(destination_cell, draw.quantity)
        stock.apply_delta(source_cell, -draw.quantity)
        movements.append(
            record_movement(
                stock.db,
                batch_id=batch.id,
                product_id=stock.product_id,
                from_location_id=source.id,
                to_location_id=destination.id,
                quantity=draw.quantity,
                movement_type=movement_type,
                actor=actor,
                reference_id=reference_id,
                note=note,
                now=now,
            )
        )
    return movements


def replenish_if_needed(
    stock: LockedStock,
    *,
    display: Location,
    warehouse: Location,
    actor: str,
    today: date,
    now: datetime,
    reference_id: str | None = None,
) -> list[StockMovement]:
    limits = stock.limits_at(display.id)
    display_quantity = stock.total_at(display.id)
    capacity = limits.capacity if limits.capacity is not None else stock.config.display_default_capacity
    amount = replenishment_amount(
        display_quantity=display_quantity,
        min_threshold=limits.min_threshold,
        capacity=capacity,
        warehouse_available=stock.satisfiable_at(warehouse.id, today=today),
    )
    if amount <= 0:
        return []

    movements = move_between(
        stock,
        source=warehouse,
        destination=display,
        quantity=amount,
        movement_type=MovementType.WAREHOUSE_TO_DISPLAY,
        actor=actor,
        today=today,
        now=now,
        reference_id=reference_id,
        note=AUTO_RESTOCK_NOTE,
    )
    logger.info(
        json.dumps(
            {
                "event": "stock.replenished",
                "product_id": stock.product_id,
                "from": warehouse.code,
                "to": display.code,
                "qty": amount,
                "display_before": display_quantity,
                "min_threshold": limits.min_threshold,
                "capacity": capacity,
            }
        )
    )
    return movements
