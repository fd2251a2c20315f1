from decimal import Decimal

import pytest

from pedidos.errors import AvailabilityError, InvalidItemError
from pedidos.pricing import (
    compute_totals,
    delivery_fee_for,
    price_cart,
    resolve_line,
    tax_for,
)
from pedidos.providers import MenuItemInfo, OptionInfo
from pedidos.schemas import OrderItemIn

MENU = {
    "A": MenuItemInfo(
        id="A",
        restaurant_id="rest1",
        name="Margarita",
        price=Decimal("10.00"),
        options={
            "large": OptionInfo(id="large", customization_id="size", price_modifier=Decimal("2.50")),
            "olives": OptionInfo(id="olives", customization_id="extras", price_modifier=Decimal("0.75")),
            "family": OptionInfo(
                id="family", customization_id="size", price_modifier=Decimal("6.00"), is_available=False
            ),
        },
    ),
    "B": MenuItemInfo(id="B", restaurant_id="rest1", name="Cuatro Quesos", price=Decimal("15.00")),
    "C": MenuItemInfo(id="C", restaurant_id="rest1", name="Calzone", price=Decimal("20.00")),
    "D": MenuItemInfo(
        id="D", restaurant_id="rest1", name="Pizza del Mes", price=Decimal("12.00"), is_available=False
    ),
    "S1": MenuItemInfo(id="S1", restaurant_id="rest2", name="Sushi Mix 8", price=Decimal("12.00")),
}


def line(item_id, qty=1, customizations=None):
    return OrderItemIn(menu_item_id=item_id, quantity=qty, customizations_data=customizations or [])


def test_boundary_cart_at_threshold_still_pays_delivery():
    priced, totals = price_cart([line("A", 2), line("B", 1)], "rest1", MENU, Decimal("2.99"))
    assert totals.subtotal == Decimal("35.00")
    assert totals.delivery_fee == Decimal("2.99")
    assert totals.tax == Decimal("2.80")
    assert [p.unit_price for p in priced] == [Decimal("10.00"), Decimal("15.00")]


def test_delivery_is_free_above_threshold():
    assert delivery_fee_for(Decimal("40.00"), Decimal("2.99")) == Decimal("0.00")
    assert delivery_fee_for(Decimal("35.01"), Decimal("2.99")) == Decimal("0.00")


def test_delivery_uses_restaurant_fee_below_threshold():
    assert delivery_fee_for(Decimal("20.00"), Decimal("2.99")) == Decimal("2.99")
    assert delivery_fee_for(Decimal("20.00"), 1.5) == Decimal("1.50")


def test_tax_is_eight_percent_rounded_half_up():
    assert tax_for(Decimal("20.00")) == Decimal("1.60")
    # 0.08 * 10.5625 = 0.845 -> 0.85
    assert tax_for(Decimal("10.5625")) == Decimal("0.85")
    assert tax_for(Decimal("0.00")) == Decimal("0.00")


def test_subtotal_is_sum_of_unit_price_times_quantity():
    priced, totals = price_cart([line("C", 2)], "rest1", MENU, Decimal("2.99"))
    assert totals.subtotal == Decimal("40.00")
    assert totals.delivery_fee == Decimal("0.00")
    assert totals.subtotal == sum(p.unit_price * p.quantity for p in priced)


def test_customization_modifiers_are_added_to_unit_price():
    sel = [
        {"customization_id": "size", "option_ids": ["large"]},
        {"customization_id": "extras", "option_ids": ["olives"]},
    ]
    priced = resolve_line(line("A", 3, sel), "rest1", MENU)
    assert priced.unit_price == Decimal("13.25")
    assert priced.line_total == Decimal("39.75")
    assert priced.customizations_data == sel


def test_client_prices_are_ignored():
    item = OrderItemIn.model_validate({"menu_item_id": "B", "quantity": 1, "price": 0.01})
    priced, totals = price_cart([item], "rest1", MENU, Decimal("2.99"))
    assert priced[0].unit_price == Decimal("15.00")
    assert totals.subtotal == Decimal("15.00")


@pytest.mark.parametrize(
    "item_id,reason",
    [("nope", "missing"), ("D", "unavailable"), ("S1", "foreign")],
)
def test_invalid_items_are_rejected(item_id, reason):
    with pytest.raises(InvalidItemError) as exc:
        resolve_line(line(item_id), "rest1", MENU)
    assert exc.value.reason == reason
    assert isinstance(exc.value, AvailabilityError)


def test_unknown_or_unavailable_options_are_rejected():
    with pytest.raises(InvalidItemError) as exc:
        resolve_line(line("A", 1, [{"customization_id": "size", "option_ids": ["huge"]}]), "rest1", MENU)
    assert exc.value.reason == "option_missing"

    with pytest.raises(InvalidItemError) as exc:
        resolve_line(line("A", 1, [{"customization_id": "size", "option_ids": ["family"]}]), "rest1", MENU)
    assert exc.value.reason == "option_unavailable"

    # option exists but under a different customization group
    with pytest.raises(InvalidItemError):
        resolve_line(line("A", 1, [{"customization_id": "size", "option_ids": ["olives"]}]), "rest1", MENU)


def test_an_option_is_charged_at_most_once_per_line():
    for selections in (
        [{"customization_id": "size", "option_ids": ["large", "large"]}],
        [
            {"customization_id": "size", "option_ids": ["large"]},
            {"customization_id": "size", "option_ids": ["large"]},
        ],
    ):
        with pytest.raises(InvalidItemError) as exc:
            resolve_line(line("A", 1, selections), "rest1", MENU)
        assert exc.value.reason == "option_repeated"
        assert exc.value.menu_item_id == "A"


def test_compute_totals_of_empty_cart_is_zero():
    totals = compute_totals([], Decimal("2.99"))
    assert totals.subtotal == Decimal("0.00")
    assert totals.delivery_fee == Decimal("2.99")
