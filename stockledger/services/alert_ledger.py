import json
import logging
import uuid
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from stockledger.core.config import Settings, settings
from stockledger.models.reorder_alert import AlertKind, ReorderAlert
from stockledger.services.location_ledger import get_quantities_by_location

logger = logging.getLogger("stockledger.ledger")


def _utc_day_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def record_alert(
    db: Session,
    *,
    product_id: str,
    location_id: str,
    observed_quantity: int,
    kind: AlertKind,
    threshold: int,
    velocity_class: str,
    now: datetime | None = None,
) -> tuple[ReorderAlert, bool]:
    """Inserts an alert unless one already exists for this product and location today."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    day_start, day_end = _utc_day_bounds(now)
    existing = db.execute(
        select(ReorderAlert)
        .where(
            ReorderAlert.product_id == product_id,
            ReorderAlert.location_id == location_id,
            ReorderAlert.created_at >= day_start,
            ReorderAlert.created_at < day_end,
        )
        .order_by(ReorderAlert.created_at.asc())
        .limit(1)
    ).scalar_one_or_none()
    if existing:
        return existing, False

    alert = ReorderAlert(
        id=str(uuid.uuid4()),
        product_id=product_id,
        location_id=location_id,
        observed_quantity=observed_quantity,
        alert_kind=kind,
        threshold=threshold,
        velocity_class=velocity_class,
        created_at=now,
    )
    db.add(alert)
    logger.info(
        json.dumps(
            {
                "event": "alert.recorded",
                "product_id": product_id,
                "location_id": location_id,
                "observed_quantity": observed_quantity,
                "alert_kind": kind.value,
                "threshold": threshold,
                "velocity_class": velocity_class,
            }
        )
    )
    return alert, True


def retract_resolved(
    db: Session,
    *,
    now: datetime | None = None,
    config: Settings = settings,
) -> int:
    """
    Deletes alerts whose product is back at or above the safety floor, but only
    once they are older than the cool-down, so marginal stock changes do not
    make alerts flap.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    cutoff = now - timedelta(minutes=config.alert_cooldown_minutes)
    aged = db.execute(
        select(ReorderAlert.id, ReorderAlert.product_id).where(ReorderAlert.created_at <= cutoff)
    ).all()
    if not aged:
        return 0

    today = now.date()
    totals: dict[str, int] = {}
    resolved_ids: list[str] = []
    for alert_id, product_id in aged:
        if product_id not in totals:
            totals[product_id] = sum(get_quantities_by_location(db, product_id=product_id, today=today).values())
        if totals[product_id] >= config.safety_floor:
            resolved_ids.append(alert_id)

    if not resolved_ids:
        return 0
    db.execute(delete(ReorderAlert).where(ReorderAlert.id.in_(resolved_ids)))
    logger.info(
        json.dumps(
            {
                "event": "alert.retracted",
                "count": len(resolved_ids),
                "product_ids": sorted({pid for pid in totals if totals[pid] >= config.safety_floor}),
            }
        )
    )
    return len(resolved_ids)


def list_open_alerts(
    db: Session,
    *,
    now: datetime | None = None,
    lookback_days: int = 7,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[ReorderAlert], int]:
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    since = now - timedelta(days=lookback_days)
    base = select(ReorderAlert).where(ReorderAlert.created_at >= since)
    total = int(
        db.execute(select(func.count(ReorderAlert.id)).where(ReorderAlert.created_at >= since)).scalar_one()
    )
    rows = db.execute(
        base.order_by(ReorderAlert.created_at.desc(), ReorderAlert.id).offset(offset).limit(limit)
    ).scalars().all()
    return list(rows), total
