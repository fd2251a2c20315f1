from enum import Enum
from typing import Dict, FrozenSet

from .errors import StateError, ValidationError


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP = "picked_up"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


INITIAL_STATUS = OrderStatus.PENDING

# Forward-only workflow. A status missing from the right-hand sides can only
# be reached from the statuses listed here.
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset(
        {OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED}
    ),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.PICKED_UP}),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.ON_THE_WAY}),
    OrderStatus.ON_THE_WAY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    s for s, targets in TRANSITIONS.items() if not targets
)

INITIAL_MESSAGE = "Order placed"

DEFAULT_MESSAGES = {
    OrderStatus.PENDING: INITIAL_MESSAGE,
    OrderStatus.CONFIRMED: "Order confirmed by restaurant",
    OrderStatus.PREPARING: "Order is being prepared",
    OrderStatus.READY_FOR_PICKUP: "Order is ready for pickup",
    OrderStatus.PICKED_UP: "Order picked up by delivery driver",
    OrderStatus.ON_THE_WAY: "Order is on the way",
    OrderStatus.DELIVERED: "Order delivered successfully",
    OrderStatus.CANCELLED: "Order cancelled",
}


def parse_status(value) -> OrderStatus:
    """Coerce a stored or submitted value into an ``OrderStatus``."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).lower())
    except ValueError:
        raise ValidationError(f"Unknown order status '{value}'")


def allowed_targets(current) -> FrozenSet[OrderStatus]:
    return TRANSITIONS[parse_status(current)]


def can_transition(current, target) -> bool:
    return parse_status(target) in allowed_targets(current)


def is_terminal(status) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def ensure_transition(current, target) -> OrderStatus:
    """Return the target status, or raise ``StateError`` if the move is illegal."""
    current = parse_status(current)
    target = parse_status(target)
    if target not in TRANSITIONS[current]:
        if current in TERMINAL_STATUSES:
            msg = f"Order is already {current.value}; no further changes allowed"
        else:
            allowed = ", ".join(sorted(s.value for s in TRANSITIONS[current]))
            msg = (
                f"Cannot change status from {current.value} to {target.value}"
                f" (allowed: {allowed})"
            )
        raise StateError(msg, current=current, requested=target)
    return target


def default_message(status) -> str:
    return DEFAULT_MESSAGES.get(parse_status(status), "Order status updated")
