# domain/cart/transformer.py
from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from domain.cart.models import CartSelection, OrderLine, build_display_name
from domain.cart.pricing import base_price_from_unit
from domain.cart.serializer import (
    deserialize_modifiers,
    deserialize_toppings,
    serialize_modifiers,
    serialize_toppings,
)
from domain.cart.schema import UNKNOWN_ITEM_NAME
from domain.errors import ValidationError
from models.record_models import OrderLineRecord
from utils.logging import log_event
from utils.trace_utils import order_line_summary, selection_summary

__all__ = ["build_display_name", "from_order_line", "to_order_line", "validate_selection"]


def validate_selection(selection: CartSelection) -> Optional[str]:
    """
    Caller-side gate before to_order_line.
    Returns a user-facing reason string, or None if the selection can be stored.
    """
    q = selection.quantity
    if isinstance(q, bool) or not isinstance(q, int) or q < 1:
        return "quantity must be at least 1"
    if not selection.menu_item_id:
        return "menu item is required"
    return None


def to_order_line(selection: CartSelection, order_id: str, trace_id: Optional[str] = None) -> OrderLine:
    reason = validate_selection(selection)
    if reason:
        raise ValidationError(reason, field="quantity" if "quantity" in reason else "menu_item_id")

    line = OrderLine(
        order_id=order_id,
        menu_item_id=selection.menu_item_id,
        menu_item_variant_id=selection.variant_id or None,
        quantity=selection.quantity,
        unit_price=selection.unit_price,
        total_price=selection.unit_price * selection.quantity,
        selected_toppings_json=serialize_toppings(selection.selected_toppings),
        selected_modifiers_json=serialize_modifiers(selection.selected_modifiers),
        special_instructions=selection.special_instructions or None,
        menu_item_name=selection.menu_item_name or None,
        variant_name=selection.variant_name or None,
    )
    log_event(trace_id, "order_line_built", {"order_line": order_line_summary(line)})
    return line


def _as_record(order_line: Union[OrderLine, Mapping[str, Any]]) -> OrderLineRecord:
    if isinstance(order_line, OrderLine):
        raw = order_line.to_record()
        raw.update({
            "id": order_line.id,
            "menu_item_name": order_line.menu_item_name,
            "variant_name": order_line.variant_name,
        })
    elif isinstance(order_line, Mapping):
        raw = dict(order_line)
    else:
        raw = {}

    try:
        return OrderLineRecord.model_validate(raw)
    except PydanticValidationError:
        # every field coerces; only a hostile payload (e.g. unhashable keys) lands here
        return OrderLineRecord()


def from_order_line(order_line: Union[OrderLine, Mapping[str, Any]], trace_id: Optional[str] = None) -> CartSelection:
    """
    Rebuild a working cart line from a persisted one.
    Blobs that are missing or malformed come back as empty sequences.
    """
    rec = _as_record(order_line)
    item_name = rec.item_name or UNKNOWN_ITEM_NAME
    variant_name = rec.item_variant_name

    toppings = deserialize_toppings(rec.selected_toppings_json, trace_id=trace_id)
    modifiers = deserialize_modifiers(rec.selected_modifiers_json, trace_id=trace_id)

    kwargs: dict = {}
    if rec.id:
        kwargs["id"] = rec.id

    # unit_price is the captured price; base_price is backed out of it so a later reprice keeps it
    selection = CartSelection(
        menu_item_id=rec.menu_item_id,
        menu_item_name=item_name,
        variant_id=rec.menu_item_variant_id,
        variant_name=variant_name,
        quantity=rec.quantity,
        base_price=base_price_from_unit(rec.unit_price, toppings, modifiers, item_name=item_name),
        unit_price=rec.unit_price,
        selected_toppings=toppings,
        selected_modifiers=modifiers,
        special_instructions=rec.special_instructions or "",
        display_name=build_display_name(item_name, variant_name),
        **kwargs,
    )
    log_event(trace_id, "order_line_restored", {"selection": selection_summary(selection)})
    return selection
