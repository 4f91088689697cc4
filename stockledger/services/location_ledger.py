"""Source of truth for how much of each batch sits at each location.

Every mutation first locks the product row, then goes through apply_delta
on a cell that was read with SELECT ... FOR UPDATE inside the caller's unit
of work, so the no-negative-stock and display-capacity invariants are
checked against locked rows.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.core.config import Settings
from stockledger.core.errors import CapacityExceededError, InsufficientStockError, NotFoundError, ValidationError
from stockledger.models.batch import Batch
from stockledger.models.location import Location, LocationCell
from stockledger.models.product import Product
from stockledger.models.stock_movement import MovementType, StockMovement
from stockledger.services.allocation_policy import CandidateCell, is_expired, order_candidates


@dataclass(frozen=True)
class LocationLimits:
    min_threshold: int
    capacity: int | None


def require_product(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def lock_product(db: Session, product_id: str) -> Product:
    """Row lock that serializes every stock mutation of one product.

    Taken before any cell is read so cells created by a concurrent
    transaction are visible once the lock is granted.
    """
    product = db.execute(select(Product).where(Product.id == product_id).with_for_update()).scalar_one_or_none()
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def get_location_by_code(db: Session, code: str) -> Location | None:
    return db.execute(
        select(Location).where(func.upper(Location.code) == code.strip().upper())
    ).scalar_one_or_none()


def require_location(db: Session, *, code: str) -> Location:
    location = get_location_by_code(db, code)
    if not location:
        raise NotFoundError(f"Location {code} not found")
    if not location.is_active:
        raise ValidationError(f"Location {location.code} is inactive")
    return location


def get_quantity(db: Session, *, product_id: str, location_id: str) -> int:
    q = select(func.coalesce(func.sum(LocationCell.current_quantity), 0)).where(
        LocationCell.product_id == product_id,
        LocationCell.location_id == location_id,
    )
    return int(db.execute(q).scalar_one())


def get_quantities_by_location(
    db: Session,
    *,
    product_id: str,
    today: date | None = None,
) -> dict[str, int]:
    """Quantity per location id. With `today`, expired batches are left out."""
    q = (
        select(LocationCell.location_id, func.coalesce(func.sum(LocationCell.current_quantity), 0))
        .join(Batch, Batch.id == LocationCell.batch_id)
        .where(LocationCell.product_id == product_id)
        .group_by(LocationCell.location_id)
    )
    if today is not None:
        q = q.where((Batch.expiry_date.is_(None)) | (Batch.expiry_date >= today))
    return {location_id: int(qty) for location_id, qty in db.execute(q).all()}


def record_movement(
    db: Session,
    *,
    batch_id: str,
    product_id: str,
    from_location_id: str | None,
    to_location_id: str | None,
    quantity: int,
    movement_type: MovementType,
    actor: str,
    reference_id: str | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> StockMovement:
    movement = StockMovement(
        id=str(uuid.uuid4()),
        batch_id=batch_id,
        product_id=product_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        quantity=quantity,
        movement_type=movement_type,
        actor=actor,
        reference_id=reference_id,
        note=note,
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(movement)
    return movement


class LockedStock:
    """Row-locked cells of one product across a fixed set of locations.

    Cells are locked in id order so concurrent operations on the same
    product acquire locks in the same sequence.
    """

    def __init__(self, db: Session, *, product_id: str, locations: list[Location], config: Settings):
        self.db = db
        self.product_id = product_id
        self.config = config
        self.locations = {location.id: location for location in locations}
        rows = db.execute(
            select(LocationCell, Batch)
            .join(Batch, Batch.id == LocationCell.batch_id)
            .where(
                LocationCell.product_id == product_id,
                LocationCell.location_id.in_(list(self.locations)),
            )
            .order_by(LocationCell.id)
            .with_for_update(of=LocationCell)
        ).all()
        self._cells: dict[tuple[str, str], LocationCell] = {}
        self._batches: dict[str, Batch] = {}
        for cell, batch in rows:
            self._cells[(cell.batch_id, cell.location_id)] = cell
            self._batches[batch.id] = batch

    def cells_at(self, location_id: str) -> list[LocationCell]:
        return [cell for (_, loc_id), cell in self._cells.items() if loc_id == location_id]

    def cell_for(self, batch_id: str, location_id: str) -> LocationCell | None:
        return self._cells.get((batch_id, location_id))

    def batch(self, batch_id: str) -> Batch:
        return self._batches[batch_id]

    def total_at(self, location_id: str) -> int:
        return sum(cell.current_quantity for cell in self.cells_at(location_id))

    def satisfiable_at(self, location_id: str, *, today: date) -> int:
        return sum(
            cell.current_quantity
            for cell in self.cells_at(location_id)
            if not is_expired(self._batches[cell.batch_id].expiry_date, today)
        )

    def candidates_at(self, location_id: str, *, today: date) -> list[CandidateCell]:
        cells = [
            CandidateCell(
                cell_id=cell.id,
                batch_id=cell.batch_id,
                quantity=cell.current_quantity,
                expiry_date=self._batches[cell.batch_id].expiry_date,
                acquisition_date=self._batches[cell.batch_id].acquisition_date,
            )
            for cell in self.cells_at(location_id)
        ]
        return order_candidates(cells, today=today, horizon_days=self.config.near_expiry_horizon_days)

    def cell_by_id(self, cell_id: str) -> LocationCell:
        for cell in self._cells.values():
            if cell.id == cell_id:
                return cell
        raise NotFoundError(f"Stock cell {cell_id} is not locked by this operation")

    def limits_at(self, location_id: str) -> LocationLimits:
        return effective_limits(self.locations[location_id], self.cells_at(location_id), self.config)

    def get_or_create_cell(self, batch: Batch, location_id: str) -> LocationCell:
        existing = self.cell_for(batch.id, location_id)
        if existing:
            return existing
        limits = self.limits_at(location_id)
        cell = LocationCell(
            id=str(uuid.uuid4()),
            batch_id=batch.id,
            location_id=location_id,
            product_id=self.product_id,
            current_quantity=0,
            min_threshold=limits.min_threshold,
            capacity=limits.capacity,
        )
        self.db.add(cell)
        self._cells[(batch.id, location_id)] = cell
        self._batches[batch.id] = batch
        return cell

    def apply_delta(self, cell: LocationCell, delta: int) -> LocationCell:
        """Signed change to one cell; refuses negative results and display overflow."""
        location = self.locations[cell.location_id]
        new_quantity = cell.current_quantity + delta
        if new_quantity < 0:
            raise InsufficientStockError(
                available=cell.current_quantity,
                requested=-delta,
                product_id=self.product_id,
                location_code=location.code,
            )
        if delta > 0 and location.is_capacity_bounded:
            capacity = self.limits_at(location.id).capacity
            current_total = self.total_at(location.id)
            if capacity is not None and current_total + delta > capacity:
                raise CapacityExceededError(
                    capacity=capacity,
                    current=current_total,
                    requested=delta,
                    product_id=self.product_id,
                    location_code=location.code,
                )
        cell.current_quantity = new_quantity
        return cell


def effective_limits(location: Location, cells: list[LocationCell], config: Settings) -> LocationLimits:
    """Limits of a product at a location: its oldest cell, else the location's defaults."""
    if cells:
        first = min(cells, key=lambda cell: (cell.created_at is None, cell.created_at or datetime.min, cell.id))
        capacity = first.capacity
        if location.is_capacity_bounded and capacity is None:
            capacity = location.default_capacity or config.display_default_capacity
        return LocationLimits(min_threshold=first.min_threshold, capacity=capacity)

    capacity = location.default_capacity
    min_threshold = location.default_min_threshold
    if location.is_capacity_bounded and capacity is None:
        capacity = config.display_default_capacity
        min_threshold = min_threshold or config.display_default_min_threshold
    return LocationLimits(min_threshold=min_threshold, capacity=capacity)
