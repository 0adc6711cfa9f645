# domain/menu/policy.py
from __future__ import annotations

import os
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from domain.cart.models import CartSelection, ConfiguredModifier, ConfiguredTopping
from domain.cart.pricing import reprice
from domain.cart.variant_rules import ordered_crusts, rules_for
from domain.menu.catalog_repo import CatalogRepo, MenuItem
from domain.menu.catalog_sqlite import SQLiteCatalogRepo
from models.record_models import SerializedModifier, SerializedTopping


# ----------------------------
# Repo factory (default)
# ----------------------------

def default_catalog_repo(db_path: Optional[str] = None) -> CatalogRepo:
    """
    SQLite by default.
    - db_path: argument, else env CART_MENU_DB_PATH, else data/menu.db (same as seed_menu_db.py)
    """
    if not db_path:
        db_path = os.getenv("CART_MENU_DB_PATH", "data/menu.db")
    return SQLiteCatalogRepo(db_path=db_path)


# ----------------------------
# catalog entries -> configured values
# ----------------------------

def _catalog_topping(entry: Dict[str, Any], *, as_default: bool) -> ConfiguredTopping:
    # catalog rows use snake_case; reuse the blob parser for its coercion rules
    rec = SerializedTopping.model_validate({
        "id": entry.get("id"),
        "name": entry.get("name"),
        "amount": entry.get("amount"),
        "price": entry.get("price"),
        "isDefault": as_default,
        "category": entry.get("category"),
    })
    return ConfiguredTopping(
        id=rec.id,
        name=rec.name,
        amount=rec.amount,
        price=rec.price,
        is_default=rec.is_default,
        category=rec.category,
    )


def _catalog_modifier(entry: Dict[str, Any]) -> ConfiguredModifier:
    rec = SerializedModifier.model_validate({
        "id": entry.get("id"),
        "name": entry.get("name"),
        "priceAdjustment": entry.get("price_adjustment", entry.get("price")),
    })
    return ConfiguredModifier(id=rec.id, name=rec.name, price_adjustment=rec.price_adjustment)


def default_toppings_for(item: MenuItem) -> List[ConfiguredTopping]:
    """Toppings the catalog marks is_default, pre-selected at 'normal' and free."""
    return [
        _catalog_topping(t, as_default=True)
        for t in (item.toppings or [])
        if t.get("is_default") is True
    ]


# ----------------------------
# Policy: what may be configured for an item
# ----------------------------

def get_configuration_options(
    *,
    restaurant_id: str,
    item_name: str,
    catalog: Optional[CatalogRepo] = None,
) -> Dict[str, Any]:
    """
    Options the configuration UI may offer for item_name.
    Unknown items get an empty option set (item resolution failures are the caller's to report).
    """
    catalog = catalog or default_catalog_repo()
    it = catalog.get_item_by_name(restaurant_id=restaurant_id, name=item_name)
    if not it:
        return {"item": None, "kind": None, "sizes": [], "crusts": [], "toppings": [], "modifiers": []}

    rules = rules_for(it.name, it.sizes or [])

    # category gate: only pizzas carry size/crust rules
    crusts: Sequence[str] = ()
    if it.category.lower() == "pizza":
        allowed = set(rules.crusts)
        if it.crusts:
            crusts = [c for c in it.crusts if c in allowed]
        else:
            crusts = list(ordered_crusts(it.name))

    return {
        "item": {
            "id": it.item_id,
            "name": it.name,
            "category": it.category,
            "base_price": it.base_price,
            "currency": it.currency,
        },
        "kind": rules.kind.value,
        "sizes": list(rules.sizes),
        "crusts": list(crusts),
        "toppings": [dict(t) for t in (it.toppings or [])],
        "modifiers": [dict(m) for m in (it.modifiers or [])],
    }


def start_selection(
    item: MenuItem,
    *,
    variant_id: Optional[str] = None,
    variant_name: Optional[str] = None,
    base_price: Optional[float] = None,
    quantity: int = 1,
) -> CartSelection:
    """New cart line for item with its default toppings, already priced."""
    selection = CartSelection(
        menu_item_id=item.item_id,
        menu_item_name=item.name,
        variant_id=variant_id,
        variant_name=variant_name,
        quantity=quantity,
        base_price=item.base_price if base_price is None else float(base_price),
        selected_toppings=default_toppings_for(item),
    )
    return reprice(selection)


def configure_selection(
    selection: CartSelection,
    *,
    toppings: Optional[List[ConfiguredTopping]] = None,
    modifiers: Optional[List[ConfiguredModifier]] = None,
    quantity: Optional[int] = None,
    special_instructions: Optional[str] = None,
) -> CartSelection:
    """Apply a configuration change and recompute unit_price."""
    changes: Dict[str, Any] = {}
    if toppings is not None:
        changes["selected_toppings"] = list(toppings)
    if modifiers is not None:
        changes["selected_modifiers"] = list(modifiers)
    if quantity is not None:
        changes["quantity"] = quantity
    if special_instructions is not None:
        changes["special_instructions"] = special_instructions
    return reprice(replace(selection, **changes))


def modifiers_for(item: MenuItem, modifier_ids: Sequence[str]) -> List[ConfiguredModifier]:
    """Resolve chosen modifier ids against the catalog, keeping the caller's order."""
    by_id = {str(m.get("id")): m for m in (item.modifiers or [])}
    return [_catalog_modifier(by_id[mid]) for mid in modifier_ids if mid in by_id]
