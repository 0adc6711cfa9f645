# utils/trace_utils.py
from __future__ import annotations

from typing import Any, Dict


def selection_summary(selection: Any) -> Dict[str, Any]:
    """
    Log-sized view of a CartSelection: ids, counts and prices, no free text.
    special_instructions is customer-typed, so only its length is exposed.
    """
    if selection is None:
        return {"_type": "None"}

    toppings = getattr(selection, "selected_toppings", None) or []
    modifiers = getattr(selection, "selected_modifiers", None) or []
    notes = getattr(selection, "special_instructions", None) or ""

    return {
        "id": getattr(selection, "id", None),
        "menu_item_id": getattr(selection, "menu_item_id", None),
        "variant_id": getattr(selection, "variant_id", None),
        "quantity": getattr(selection, "quantity", None),
        "unit_price": getattr(selection, "unit_price", None),
        "toppings_count": len(toppings),
        "modifiers_count": len(modifiers),
        "special_instructions_len": len(notes),
    }


def order_line_summary(line: Any) -> Dict[str, Any]:
    if line is None:
        return {"_type": "None"}

    toppings = getattr(line, "selected_toppings_json", None)
    modifiers = getattr(line, "selected_modifiers_json", None)

    return {
        "order_id": getattr(line, "order_id", None),
        "menu_item_id": getattr(line, "menu_item_id", None),
        "menu_item_variant_id": getattr(line, "menu_item_variant_id", None),
        "quantity": getattr(line, "quantity", None),
        "unit_price": getattr(line, "unit_price", None),
        "total_price": getattr(line, "total_price", None),
        "toppings_count": len(toppings) if isinstance(toppings, list) else None,
        "modifiers_count": len(modifiers) if isinstance(modifiers, list) else None,
    }


def commit_summary(result: Any) -> Dict[str, Any]:
    """CommitResult -> log payload (transaction reduced to its id/type)."""
    if result is None:
        return {"_type": "None"}

    txn = getattr(result, "transaction", None)
    conflict = getattr(result, "conflict", None)

    return {
        "customer_id": getattr(result, "customer_id", None),
        "points_requested": getattr(result, "points_requested", None),
        "points_debited": getattr(result, "points_debited", None),
        "new_balance": getattr(result, "new_balance", None),
        "transaction_id": getattr(txn, "transaction_id", None) if txn else None,
        "transaction_type": getattr(txn, "transaction_type", None) if txn else None,
        "conflict": conflict.kind if conflict is not None else None,
    }
