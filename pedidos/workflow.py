import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import tracking
from .database_sql import transaction
from .errors import AuthenticationError, AuthorizationError, NotFoundError, StateError
from .identity import Caller
from .ledger import load_order
from .models import OrderORM
from .providers import Catalog, get_catalog
from .status import OrderStatus, default_message, ensure_transition, parse_status

logger = logging.getLogger("pedidos.workflow")


def compare_and_set_status(
    db: Session, order_id: str, expected: OrderStatus, target: OrderStatus, now: datetime
) -> bool:
    """Move the order to ``target`` only if it is still in ``expected``.

    Returns False when another writer got there first.
    """
    values = {"status": target.value, "updated_at": now}
    if target == OrderStatus.DELIVERED:
        values["actual_delivery_time"] = now
    updated = (
        db.query(OrderORM)
        .filter(OrderORM.id == order_id, OrderORM.status == expected.value)
        .update(values, synchronize_session=False)
    )
    return updated == 1


def transition_order(
    db: Session,
    caller: Optional[Caller],
    order_id: str,
    target,
    message: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    catalog: Optional[Catalog] = None,
) -> OrderORM:
    """Apply one status transition requested by the restaurant owner.

    The order row is locked for the duration of the transaction and the
    update is conditional on the status read under that lock, so of two
    concurrent requests for the same move only the first to commit succeeds;
    the other gets ``StateError``.
    """
    if caller is None:
        raise AuthenticationError("User not authenticated")
    target = parse_status(target)
    catalog = catalog or get_catalog(db)

    try:
        with transaction(db):
            order = (
                db.query(OrderORM)
                .filter(OrderORM.id == order_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if order is None:
                raise NotFoundError("Order not found")

            restaurant = catalog.get_restaurant(order.restaurant_id)
            if restaurant is None or restaurant.owner_id != caller.id:
                raise AuthorizationError("Not authorized to update this order")

            current = parse_status(order.status)
            ensure_transition(current, target)

            now = datetime.utcnow()
            if not compare_and_set_status(db, order_id, current, target, now):
                raise StateError(
                    f"Order {order_id} is no longer {current.value}",
                    current=current,
                    requested=target,
                )
            tracking.append(
                db,
                order_id,
                target,
                message or default_message(target),
                latitude=latitude,
                longitude=longitude,
                at=now,
            )
    except (AuthorizationError, StateError) as e:
        logger.warning(
            "[PEDIDOS] transition of order %s to %s by %s rejected: %s",
            order_id,
            target.value,
            caller.id,
            e.message,
        )
        raise

    logger.info(
        "[PEDIDOS] order %s moved %s -> %s by %s",
        order_id,
        current.value,
        target.value,
        caller.id,
    )
    return load_order(db, order_id)
