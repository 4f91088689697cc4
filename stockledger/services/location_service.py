import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.core.config import Settings, settings
from stockledger.core.errors import ValidationError
from stockledger.models.location import Location, LocationKind
from stockledger.services.location_ledger import get_location_by_code


def create_location(
    db: Session,
    *,
    code: str,
    name: str,
    kind: LocationKind,
    default_capacity: int | None = None,
    default_min_threshold: int = 0,
) -> Location:
    normalized_code = code.strip().upper()
    if get_location_by_code(db, normalized_code):
        raise ValidationError(f"Location code {normalized_code} already exists")
    if kind != LocationKind.DISPLAY and default_capacity is not None:
        raise ValidationError("Only display locations are capacity-bounded")
    if default_capacity is not None and default_min_threshold > default_capacity:
        raise ValidationError("Minimum threshold cannot exceed capacity")

    location = Location(
        id=str(uuid.uuid4()),
        code=normalized_code,
        name=name.strip(),
        kind=kind,
        is_active=True,
        default_capacity=default_capacity,
        default_min_threshold=default_min_threshold,
    )
    db.add(location)
    return location


def list_locations(db: Session, *, include_inactive: bool = False) -> list[Location]:
    stmt = select(Location)
    if not include_inactive:
        stmt = stmt.where(Location.is_active.is_(True))
    return list(db.execute(stmt.order_by(Location.code.asc())).scalars().all())


def seed_default_locations(db: Session, *, config: Settings = settings) -> list[Location]:
    """Creates the warehouse, display and online locations named in settings when missing."""
    wanted = [
        (config.warehouse_location_code, "Main Warehouse", LocationKind.WAREHOUSE, None, 0),
        (
            config.display_location_code,
            "Store Shelf",
            LocationKind.DISPLAY,
            config.display_default_capacity,
            config.display_default_min_threshold,
        ),
        (config.online_location_code, "Online Store", LocationKind.ONLINE, None, 0),
    ]
    created: list[Location] = []
    for code, name, kind, capacity, min_threshold in wanted:
        if get_location_by_code(db, code):
            continue
        created.append(
            create_location(
                db,
                code=code,
                name=name,
                kind=kind,
                default_capacity=capacity,
                default_min_threshold=min_threshold,
            )
        )
    db.commit()
    return created
