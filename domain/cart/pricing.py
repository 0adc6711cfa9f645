# domain/cart/pricing.py
from __future__ import annotations

import math
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from domain.cart.models import CartSelection, ConfiguredModifier, ConfiguredTopping
from domain.cart.schema import UPGRADE_AMOUNTS
from domain.cart.variant_rules import VariantKind, resolve_variant_kind


def topping_price_contribution(topping: ConfiguredTopping) -> float:
    """
    - amount 'none'            -> 0
    - variant default          -> free unless upgraded to extra/xxtra
    - anything else            -> its price
    """
    if topping.amount == "none":
        return 0.0
    if topping.is_default and topping.amount not in UPGRADE_AMOUNTS:
        return 0.0
    return max(0.0, float(topping.price))


def calculate_unit_price(
    base_price: float,
    toppings: Iterable[ConfiguredTopping] = (),
    modifiers: Iterable[ConfiguredModifier] = (),
    *,
    item_name: Optional[Any] = None,
) -> float:
    """
    Price of ONE unit. Stuffed pizzas are a fixed recipe: toppings do not move
    the price, modifiers still do. Never below 0.
    """
    total = max(0.0, float(base_price or 0.0))

    if resolve_variant_kind(item_name) is VariantKind.STANDARD:
        total += sum(topping_price_contribution(t) for t in toppings or [])

    total += sum(float(m.price_adjustment) for m in modifiers or [])
    return max(0.0, total)


def base_price_from_unit(
    unit_price: float,
    toppings: Iterable[ConfiguredTopping] = (),
    modifiers: Iterable[ConfiguredModifier] = (),
    *,
    item_name: Optional[Any] = None,
) -> float:
    """
    Inverse of calculate_unit_price for a captured line: the stored unit price
    minus what its toppings/modifiers contributed, so reprice() lands on the
    stored price again instead of adding the selections a second time.
    """
    extras = 0.0
    if resolve_variant_kind(item_name) is VariantKind.STANDARD:
        extras += sum(topping_price_contribution(t) for t in toppings or [])
    extras += sum(float(m.price_adjustment) for m in modifiers or [])
    return max(0.0, float(unit_price or 0.0) - extras)


def reprice(selection: CartSelection, item_name: Optional[Any] = None) -> CartSelection:
    """Copy of selection with unit_price recomputed from base_price + selections."""
    unit_price = calculate_unit_price(
        selection.base_price,
        selection.selected_toppings,
        selection.selected_modifiers,
        item_name=item_name if item_name is not None else selection.menu_item_name,
    )
    return replace(selection, unit_price=unit_price)


def line_total(selection: CartSelection) -> float:
    return selection.unit_price * selection.quantity


def cart_subtotal(selections: Iterable[CartSelection]) -> float:
    return sum(line_total(s) for s in selections or [])


def round_money(amount: float) -> float:
    """Presentation rounding only (2 dp, half-up). Non-numbers and nan/inf read as 0."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)) or not math.isfinite(amount):
        amount = 0.0
    q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(q)


def format_money(amount: float) -> str:
    return f"${round_money(amount):.2f}"
