from __future__ import annotations

import json

import pytest

from domain.cart.models import CartSelection, ConfiguredModifier, ConfiguredTopping, OrderLine
from domain.cart.schema import ORDER_LINE_COLUMNS
from domain.cart.pricing import reprice
from domain.cart.transformer import build_display_name, from_order_line, to_order_line, validate_selection
from domain.errors import ValidationError
from domain.menu.policy import configure_selection


def test_to_order_line_maps_every_column(selection):
    line = to_order_line(selection, "order_42")
    assert line.order_id == "order_42"
    assert line.menu_item_id == "rest_01:pepperoni_pizza"
    assert line.menu_item_variant_id == "var_large"
    assert line.quantity == 2
    assert line.unit_price == pytest.approx(20.49)
    assert line.total_price == pytest.approx(40.98)
    assert line.special_instructions == "ring the bell twice"
    assert line.selected_toppings_json[0]["isDefault"] is True
    assert line.selected_modifiers_json[1]["priceAdjustment"] == -2.5
    assert set(line.to_record()) == set(ORDER_LINE_COLUMNS)


def test_to_order_line_nulls_empty_optionals():
    sel = CartSelection(menu_item_id="rest_01:garlic_bread", menu_item_name="Garlic Bread", unit_price=5.49)
    line = to_order_line(sel, "order_1")
    assert line.menu_item_variant_id is None
    assert line.special_instructions is None
    assert line.selected_toppings_json == []
    assert line.total_price == pytest.approx(5.49)


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True, None])
def test_invalid_quantity_is_rejected(selection, quantity):
    selection.quantity = quantity
    assert validate_selection(selection) == "quantity must be at least 1"
    with pytest.raises(ValidationError) as exc:
        to_order_line(selection, "order_1")
    assert exc.value.to_dict()["kind"] == "validation_error"


def test_missing_menu_item_is_rejected():
    sel = CartSelection(menu_item_id="", menu_item_name="Ghost")
    assert validate_selection(sel) == "menu item is required"
    with pytest.raises(ValidationError):
        to_order_line(sel, "order_1")


@pytest.mark.parametrize("quantity", [1, 3, 12])
def test_round_trip_keeps_selection(selection, quantity):
    selection.quantity = quantity
    restored = from_order_line(to_order_line(selection, "order_7"))
    assert restored.quantity == quantity
    assert restored.menu_item_id == selection.menu_item_id
    assert restored.variant_id == selection.variant_id
    assert restored.selected_toppings == selection.selected_toppings
    assert restored.selected_modifiers == selection.selected_modifiers
    assert restored.unit_price == pytest.approx(selection.unit_price)
    assert restored.display_name == "Large Pepperoni Pizza"
    assert restored.special_instructions == selection.special_instructions


def test_from_raw_row_with_joined_names():
    row = {
        "id": "line_1",
        "order_id": "order_9",
        "menu_item_id": "rest_01:cheese_pizza",
        "menu_item_variant_id": "var_small",
        "quantity": 2,
        "unit_price": 12.99,
        "total_price": 25.98,
        "selected_toppings_json": json.dumps([{"id": "top_onion", "name": "Onions", "amount": "light", "price": 1.0}]),
        "selected_modifiers_json": None,
        "special_instructions": None,
        "menu_item": {"name": "Cheese Pizza"},
        "menu_item_variant": {"name": "Small"},
        "menu_item_name": "ignored flat name",
    }
    sel = from_order_line(row)
    assert sel.id == "line_1"
    assert sel.display_name == "Small Cheese Pizza"
    assert sel.menu_item_name == "Cheese Pizza"
    assert sel.selected_toppings == [ConfiguredTopping(id="top_onion", name="Onions", amount="light", price=1.0)]
    assert sel.selected_modifiers == []
    assert sel.unit_price == pytest.approx(12.99)
    # light onions were part of the stored price
    assert sel.base_price == pytest.approx(11.99)
    assert sel.special_instructions == ""


def test_from_row_with_flat_names_only():
    sel = from_order_line({"menu_item_id": "x", "menu_item_name": "Garlic Bread", "quantity": 1, "unit_price": 5.49})
    assert sel.display_name == "Garlic Bread"
    assert sel.variant_name is None


def test_from_row_without_names_or_blobs():
    sel = from_order_line({
        "menu_item_id": "x",
        "quantity": "abc",
        "unit_price": "n/a",
        "selected_toppings_json": {},
        "selected_modifiers_json": "{broken",
    })
    assert sel.display_name == "Unknown Item"
    assert sel.quantity == 1
    assert sel.unit_price == 0.0
    assert sel.selected_toppings == []
    assert sel.selected_modifiers == []


def test_from_order_line_keeps_stored_price_not_live_price():
    line = OrderLine(
        order_id="o",
        menu_item_id="rest_01:the_chub",
        quantity=1,
        unit_price=25.0,
        total_price=25.0,
        selected_modifiers_json=[{"id": "m", "name": "Well Done", "priceAdjustment": 0}],
        menu_item_name="The Chub",
    )
    sel = from_order_line(line)
    assert sel.unit_price == 25.0
    assert sel.selected_modifiers == [ConfiguredModifier(id="m", name="Well Done")]


@pytest.mark.parametrize(
    "item, variant, expected",
    [
        ("Pepperoni Pizza", "Large", "Large Pepperoni Pizza"),
        ("Pepperoni Pizza", None, "Pepperoni Pizza"),
        ("Pepperoni Pizza", "  ", "Pepperoni Pizza"),
        (None, "Large", "Large Unknown Item"),
        ("", None, "Unknown Item"),
    ],
)
def test_build_display_name(item, variant, expected):
    assert build_display_name(item, variant) == expected


def _priced_line():
    # base 10 + onions 2 + square cut 1 -> captured unit price 13
    sel = CartSelection(
        menu_item_id="rest_01:cheese_pizza",
        menu_item_name="Cheese Pizza",
        base_price=10.0,
        unit_price=13.0,
        selected_toppings=[ConfiguredTopping(id="top_onion", name="Onions", price=2.0, category="veggie")],
        selected_modifiers=[ConfiguredModifier(id="mod_square", name="Square Cut", price_adjustment=1.0)],
    )
    return to_order_line(sel, "order_3")


def test_restored_line_keeps_its_price_when_reconfigured():
    restored = from_order_line(_priced_line())
    assert restored.base_price == pytest.approx(10.0)

    updated = configure_selection(restored, quantity=2)
    assert updated.unit_price == pytest.approx(13.0)
    assert reprice(restored).unit_price == pytest.approx(13.0)


def test_restored_line_with_discount_modifier_reprices_to_stored_price():
    sel = CartSelection(
        menu_item_id="rest_01:garlic_bread",
        menu_item_name="Garlic Bread",
        base_price=5.49,
        unit_price=3.49,
        selected_modifiers=[ConfiguredModifier(id="mod_coupon", name="Coupon", price_adjustment=-2.0)],
    )
    restored = from_order_line(to_order_line(sel, "order_4"))
    assert restored.base_price == pytest.approx(5.49)
    assert reprice(restored).unit_price == pytest.approx(3.49)


def test_restored_stuffed_line_only_backs_out_modifiers():
    sel = CartSelection(
        menu_item_id="rest_01:the_chub",
        menu_item_name="The Chub",
        base_price=27.99,
        unit_price=28.99,
        selected_toppings=[ConfiguredTopping(id="top_sausage", name="Sausage", amount="extra", price=2.0)],
        selected_modifiers=[ConfiguredModifier(id="mod_well_done", name="Well Done", price_adjustment=1.0)],
    )
    restored = from_order_line(to_order_line(sel, "order_5"))
    assert restored.base_price == pytest.approx(27.99)
    assert configure_selection(restored, quantity=3).unit_price == pytest.approx(28.99)


@pytest.mark.parametrize("category", ["", "  veggie  "])
def test_round_trip_keeps_category_verbatim(category):
    sel = CartSelection(
        menu_item_id="rest_01:cheese_pizza",
        menu_item_name="Cheese Pizza",
        unit_price=13.0,
        selected_toppings=[ConfiguredTopping(id="top_onion", name="Onions", price=2.0, category=category)],
    )
    back = from_order_line(to_order_line(sel, "order_6"))
    assert back.selected_toppings == sel.selected_toppings


def test_record_blobs_are_copies(selection):
    line = to_order_line(selection, "order_8")
    record = line.to_record()
    record["selected_toppings_json"].clear()
    record["selected_modifiers_json"][0]["priceAdjustment"] = 99.0

    assert len(line.selected_toppings_json) == 3
    assert line.selected_modifiers_json[0]["priceAdjustment"] == 0.0
