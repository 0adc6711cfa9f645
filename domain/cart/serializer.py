# domain/cart/serializer.py
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from domain.cart.models import CartSelection, ConfiguredModifier, ConfiguredTopping
from domain.errors import MalformedDataError
from models.record_models import SerializedModifier, SerializedTopping
from utils.logging import log_event

_M = TypeVar("_M", bound=BaseModel)


# ----------------------------
# encode
# ----------------------------

def serialize_toppings(toppings: Iterable[ConfiguredTopping]) -> List[Dict[str, Any]]:
    """
    Values are written as held; coercion only happens on the way back in,
    so a decode of this output reproduces the toppings exactly.
    """
    out: List[Dict[str, Any]] = []
    for t in toppings or []:
        rec = SerializedTopping.model_construct(
            id=t.id,
            name=t.name,
            amount=t.amount,
            price=t.price,
            is_default=t.is_default,
            category=t.category,
        )
        out.append(rec.model_dump(by_alias=True))
    return out


def serialize_modifiers(modifiers: Iterable[ConfiguredModifier]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for m in modifiers or []:
        rec = SerializedModifier.model_construct(id=m.id, name=m.name, price_adjustment=m.price_adjustment)
        out.append(rec.model_dump(by_alias=True))
    return out


# ----------------------------
# decode (schema-on-write blobs: never trust the shape)
# ----------------------------

def _load_blob(blob: Any) -> List[Any]:
    """
    None / missing -> []
    JSON text (SQLite TEXT column) -> parsed
    anything that is not a list after that -> MalformedDataError
    """
    if blob is None:
        return []
    if isinstance(blob, (bytes, bytearray)):
        blob = blob.decode("utf-8", errors="replace")
    if isinstance(blob, str):
        if not blob.strip():
            return []
        try:
            blob = json.loads(blob)
        except ValueError as e:
            raise MalformedDataError("blob is not valid JSON", error=str(e)[:200]) from e
    if not isinstance(blob, list):
        raise MalformedDataError("blob is not an array", blob_type=type(blob).__name__)
    return blob


def _parse_entries(blob: Any, model: Type[_M], blob_name: str, trace_id: Optional[str]) -> List[_M]:
    try:
        entries = _load_blob(blob)
    except MalformedDataError as e:
        log_event(trace_id, "blob_malformed", {"blob": blob_name, **e.to_dict()})
        return []

    out: List[_M] = []
    skipped = 0
    for entry in entries:
        if not isinstance(entry, dict):
            skipped += 1
            continue
        try:
            out.append(model.model_validate(entry))
        except PydanticValidationError:
            skipped += 1

    if skipped:
        log_event(trace_id, "blob_entries_skipped", {"blob": blob_name, "skipped": skipped, "kept": len(out)})
    return out


def deserialize_toppings(blob: Any, trace_id: Optional[str] = None) -> List[ConfiguredTopping]:
    return [
        ConfiguredTopping(
            id=rec.id,
            name=rec.name,
            amount=rec.amount,
            price=rec.price,
            is_default=rec.is_default,
            category=rec.category,
        )
        for rec in _parse_entries(blob, SerializedTopping, "selected_toppings_json", trace_id)
    ]


def deserialize_modifiers(blob: Any, trace_id: Optional[str] = None) -> List[ConfiguredModifier]:
    return [
        ConfiguredModifier(id=rec.id, name=rec.name, price_adjustment=rec.price_adjustment)
        for rec in _parse_entries(blob, SerializedModifier, "selected_modifiers_json", trace_id)
    ]


# ----------------------------
# session storage
# ----------------------------

def selection_to_dict(selection: CartSelection) -> Dict[str, Any]:
    return {
        "id": selection.id,
        "menu_item_id": selection.menu_item_id,
        "menu_item_name": selection.menu_item_name,
        "variant_id": selection.variant_id,
        "variant_name": selection.variant_name,
        "quantity": selection.quantity,
        "base_price": selection.base_price,
        "unit_price": selection.unit_price,
        "selected_toppings": serialize_toppings(selection.selected_toppings),
        "selected_modifiers": serialize_modifiers(selection.selected_modifiers),
        "special_instructions": selection.special_instructions,
        "display_name": selection.display_name,
    }


def _num(x: Any, default: float = 0.0) -> float:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return default
    return float(x)


def selection_from_dict(d: Dict[str, Any], trace_id: Optional[str] = None) -> Optional[CartSelection]:
    """Returns None for payloads that do not identify a menu item."""
    if not isinstance(d, dict):
        return None
    menu_item_id = d.get("menu_item_id")
    if not isinstance(menu_item_id, str) or not menu_item_id:
        return None

    quantity = d.get("quantity")
    kwargs: Dict[str, Any] = {}
    if isinstance(d.get("id"), str) and d["id"]:
        kwargs["id"] = d["id"]

    return CartSelection(
        menu_item_id=menu_item_id,
        menu_item_name=str(d.get("menu_item_name") or ""),
        quantity=quantity if isinstance(quantity, int) and not isinstance(quantity, bool) else 1,
        unit_price=_num(d.get("unit_price")),
        base_price=_num(d.get("base_price")),
        variant_id=d.get("variant_id") or None,
        variant_name=d.get("variant_name") or None,
        selected_toppings=deserialize_toppings(d.get("selected_toppings"), trace_id=trace_id),
        selected_modifiers=deserialize_modifiers(d.get("selected_modifiers"), trace_id=trace_id),
        special_instructions=str(d.get("special_instructions") or ""),
        display_name=str(d.get("display_name") or ""),
        **kwargs,
    )
