"""Order creation and order queries."""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from . import tracking
from .database_sql import transaction
from .errors import AuthenticationError, AvailabilityError, NotFoundError, ValidationError
from .identity import Caller
from .models import OrderItemORM, OrderORM
from .pricing import price_cart, to_money
from .providers import AddressBook, Catalog, SqlAddressBook, get_catalog
from .schemas import OrderCreate, PaymentMethodType
from .status import INITIAL_MESSAGE, INITIAL_STATUS, parse_status

logger = logging.getLogger("pedidos.ledger")


def validate_order_request(payload: OrderCreate) -> None:
    """Shape checks that need no database access."""
    if not payload.items:
        raise ValidationError("An order needs at least one item")
    for it in payload.items:
        if it.quantity is None or it.quantity < 1:
            raise ValidationError(f"Invalid quantity for item {it.menu_item_id}")
    if payload.tip is not None and payload.tip < 0:
        raise ValidationError("Tip cannot be negative")
    try:
        PaymentMethodType(payload.payment_method_type)
    except ValueError:
        raise ValidationError(f"Unknown payment method '{payload.payment_method_type}'")


def create_order(
    db: Session,
    caller: Optional[Caller],
    payload: OrderCreate,
    catalog: Optional[Catalog] = None,
    addresses: Optional[AddressBook] = None,
) -> OrderORM:
    """Create an order, its item snapshots and its first tracking entry.

    Everything is written in one transaction: either the order exists with
    all its items and exactly one ``pending`` tracking entry, or nothing was
    written at all.
    """
    if caller is None:
        raise AuthenticationError("User not authenticated")
    validate_order_request(payload)

    catalog = catalog or get_catalog(db)
    addresses = addresses or SqlAddressBook(db)
    order_id = str(uuid.uuid4())

    with transaction(db):
        restaurant = catalog.get_restaurant(payload.restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {payload.restaurant_id} not found")
        if not restaurant.is_active:
            raise AvailabilityError(f"Restaurant {payload.restaurant_id} is not active")

        address = addresses.get_address(payload.delivery_address_id)
        if address is None or address.user_id != caller.id:
            raise NotFoundError("Delivery address not found")

        menu = catalog.get_menu_items(
            restaurant.id, [it.menu_item_id for it in payload.items]
        )
        priced, totals = price_cart(
            payload.items, restaurant.id, menu, restaurant.delivery_fee
        )

        now = datetime.utcnow()
        order = OrderORM(
            id=order_id,
            customer_id=caller.id,
            restaurant_id=restaurant.id,
            status=INITIAL_STATUS.value,
            subtotal=totals.subtotal,
            delivery_fee=totals.delivery_fee,
            tax=totals.tax,
            tip=to_money(payload.tip or 0),
            delivery_address_id=address.id,
            payment_method_type=PaymentMethodType(payload.payment_method_type).value,
            payment_details=payload.payment_details,
            special_instructions=payload.special_instructions,
            estimated_delivery_time=now + timedelta(minutes=restaurant.max_delivery_time),
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()

        for line in priced:
            db.add(
                OrderItemORM(
                    id=str(uuid.uuid4()),
                    order_id=order_id,
                    menu_item_id=line.menu_item_id,
                    name=line.name,
                    price=line.unit_price,
                    quantity=line.quantity,
                    customizations_data=line.customizations_data,
                    special_instructions=line.special_instructions,
                    created_at=now,
                )
            )
        db.flush()

        tracking.append(db, order_id, INITIAL_STATUS, INITIAL_MESSAGE, at=now)

    logger.info(
        "[PEDIDOS] order %s created for customer %s at restaurant %s (subtotal=%s)",
        order_id,
        caller.id,
        restaurant.id,
        totals.subtotal,
    )
    return load_order(db, order_id)


def load_order(db: Session, order_id: str) -> Optional[OrderORM]:
    return (
        db.query(OrderORM)
        .options(selectinload(OrderORM.items), selectinload(OrderORM.tracking_updates))
        .filter(OrderORM.id == order_id)
        .first()
    )


def get_order_for(
    db: Session, caller: Caller, order_id: str, catalog: Optional[Catalog] = None
) -> OrderORM:
    """Fetch an order visible to the caller: its customer or the restaurant owner."""
    o = load_order(db, order_id)
    if o is None:
        raise NotFoundError("Order not found")
    if o.customer_id != caller.id:
        restaurant = (catalog or get_catalog(db)).get_restaurant(o.restaurant_id)
        if restaurant is None or restaurant.owner_id != caller.id:
            raise NotFoundError("Order not found")
    return o


def _paginate(query, page: int, limit: int):
    page = max(1, page)
    limit = max(1, min(limit, 100))
    total = query.count()
    rows = (
        query.options(selectinload(OrderORM.items), selectinload(OrderORM.tracking_updates))
        .order_by(OrderORM.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, {"page": page, "limit": limit, "total": total}


def list_customer_orders(db: Session, caller: Caller, page: int = 1, limit: int = 10):
    q = db.query(OrderORM).filter(OrderORM.customer_id == caller.id)
    return _paginate(q, page, limit)


def list_restaurant_orders(
    db: Session,
    caller: Caller,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    catalog: Optional[Catalog] = None,
):
    restaurant = (catalog or get_catalog(db)).get_restaurant_by_owner(caller.id)
    if not restaurant:
        raise NotFoundError("Restaurant not found")
    q = db.query(OrderORM).filter(OrderORM.restaurant_id == restaurant.id)
    if status:
        q = q.filter(OrderORM.status == parse_status(status).value)
    return _paginate(q, page, limit)
