"""Order pricing.

Prices always come from the catalog snapshot handed in by the caller; the
cart only says *what* was ordered and how many. All amounts are ``Decimal``
rounded to cents.
"""
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence

from .errors import InvalidItemError
from .providers import MenuItemInfo

CENT = Decimal("0.01")
TAX_RATE = Decimal("0.08")
# Orders strictly above this subtotal ship for free.
FREE_DELIVERY_THRESHOLD = Decimal("35.00")


def to_money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int
    customizations_data: List[dict] = field(default_factory=list)
    special_instructions: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal


def _selections(line) -> list:
    raw = getattr(line, "customizations_data", None) or []
    out = []
    for sel in raw:
        if isinstance(sel, dict):
            cust_id = sel.get("customization_id")
            option_ids = sel.get("option_ids") or []
        else:
            cust_id = sel.customization_id
            option_ids = sel.option_ids or []
        out.append({"customization_id": cust_id, "option_ids": list(option_ids)})
    return out


def resolve_line(line, restaurant_id: str, menu: Dict[str, MenuItemInfo]) -> PricedLine:
    """Price one cart line against the catalog snapshot."""
    item_id = line.menu_item_id
    item = menu.get(item_id)
    if item is None:
        raise InvalidItemError(f"Menu item {item_id} not found", item_id, "missing")
    if item.restaurant_id != restaurant_id:
        raise InvalidItemError(
            f"Menu item {item_id} does not belong to restaurant {restaurant_id}",
            item_id,
            "foreign",
        )
    if not item.is_available:
        raise InvalidItemError(
            f"Menu item {item_id} is not available", item_id, "unavailable"
        )

    unit_price = to_money(item.price)
    selections = _selections(line)
    seen = set()
    for sel in selections:
        for option_id in sel["option_ids"]:
            if option_id in seen:
                raise InvalidItemError(
                    f"Option {option_id} selected more than once for menu item {item_id}",
                    item_id,
                    "option_repeated",
                )
            seen.add(option_id)
            opt = item.options.get(option_id)
            if opt is None or (
                sel["customization_id"] and opt.customization_id != sel["customization_id"]
            ):
                raise InvalidItemError(
                    f"Option {option_id} is not offered for menu item {item_id}",
                    item_id,
                    "option_missing",
                )
            if not opt.is_available:
                raise InvalidItemError(
                    f"Option {option_id} of menu item {item_id} is not available",
                    item_id,
                    "option_unavailable",
                )
            unit_price += to_money(opt.price_modifier)

    return PricedLine(
        menu_item_id=item.id,
        name=item.name,
        unit_price=unit_price,
        quantity=int(line.quantity),
        customizations_data=selections,
        special_instructions=getattr(line, "special_instructions", None),
    )


def resolve_lines(lines: Sequence, restaurant_id: str, menu: Dict[str, MenuItemInfo]) -> List[PricedLine]:
    return [resolve_line(line, restaurant_id, menu) for line in lines]


def delivery_fee_for(subtotal: Decimal, flat_fee) -> Decimal:
    if subtotal > FREE_DELIVERY_THRESHOLD:
        return to_money(0)
    return to_money(flat_fee)


def tax_for(subtotal: Decimal) -> Decimal:
    return to_money(subtotal * TAX_RATE)


def compute_totals(priced: Sequence[PricedLine], flat_delivery_fee) -> Totals:
    subtotal = to_money(sum((p.line_total for p in priced), Decimal("0")))
    return Totals(
        subtotal=subtotal,
        delivery_fee=delivery_fee_for(subtotal, flat_delivery_fee),
        tax=tax_for(subtotal),
    )


def price_cart(lines: Sequence, restaurant_id: str, menu: Dict[str, MenuItemInfo], flat_delivery_fee):
    """Resolve every line and compute the order totals in one pass."""
    priced = resolve_lines(lines, restaurant_id, menu)
    return priced, compute_totals(priced, flat_delivery_fee)
