"""Append-only ledger of order status changes.

Entries are never updated or deleted. Their order is defined by
``created_at``; the physical row order is irrelevant and every read sorts.
"""
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from .models import TrackingUpdateORM
from .status import OrderStatus, parse_status

ASC = "asc"
DESC = "desc"

_TICK = timedelta(microseconds=1)


def list_updates(db: Session, order_id: str, order: str = ASC) -> List[TrackingUpdateORM]:
    col = TrackingUpdateORM.created_at
    return (
        db.query(TrackingUpdateORM)
        .filter(TrackingUpdateORM.order_id == order_id)
        .order_by(col.desc() if order == DESC else col.asc())
        .all()
    )


def latest_update(db: Session, order_id: str) -> Optional[TrackingUpdateORM]:
    return (
        db.query(TrackingUpdateORM)
        .filter(TrackingUpdateORM.order_id == order_id)
        .order_by(TrackingUpdateORM.created_at.desc())
        .first()
    )


def current_status(db: Session, order_id: str) -> Optional[OrderStatus]:
    last = latest_update(db, order_id)
    return parse_status(last.status) if last else None


def append(
    db: Session,
    order_id: str,
    status,
    message: str,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    at: Optional[datetime] = None,
) -> TrackingUpdateORM:
    """Add one entry to the order's ledger inside the caller's transaction.

    The new entry is stamped strictly after the latest existing one, so
    sorting by ``created_at`` always reproduces the history even when the
    clock did not advance between two writes.
    """
    created_at = at or datetime.utcnow()
    last = latest_update(db, order_id)
    if last is not None and created_at <= last.created_at:
        created_at = last.created_at + _TICK

    entry = TrackingUpdateORM(
        id=str(uuid.uuid4()),
        order_id=order_id,
        status=parse_status(status).value,
        message=message,
        latitude=latitude,
        longitude=longitude,
        created_at=created_at,
    )
    db.add(entry)
    db.flush()
    return entry
