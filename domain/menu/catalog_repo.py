# domain/menu/catalog_repo.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from domain.cart.variant_rules import normalize_item_name


@dataclass(frozen=True)
class MenuItem:
    item_id: str
    restaurant_id: str

    name: str
    category: str                       # "pizza" | "wings" | "sides" ...
    base_price: float = 0.0
    currency: str = "USD"

    # size codes in menu display order, e.g. ["small", "medium", "large", "xlarge"]
    sizes: Optional[List[str]] = None
    crusts: Optional[List[str]] = None

    # [{"id", "name", "price", "category", "is_default"}]
    toppings: Optional[List[Dict[str, Any]]] = None
    # [{"id", "name", "price_adjustment", "category"}]
    modifiers: Optional[List[Dict[str, Any]]] = None

    available: bool = True


class CatalogRepo:
    """
    Menu catalog lookup.
    - In production this is the hosted relational store behind the menu admin.
    - Cart rules only depend on this interface.
    """

    def get_item(self, *, restaurant_id: str, item_id: str) -> Optional[MenuItem]:
        raise NotImplementedError

    def get_item_by_name(self, *, restaurant_id: str, name: str) -> Optional[MenuItem]:
        raise NotImplementedError

    def list_items(
        self,
        *,
        restaurant_id: str,
        category: Optional[str] = None,
        include_unavailable: bool = False,
        limit: int = 50,
    ) -> List[MenuItem]:
        raise NotImplementedError


class InMemoryCatalogRepo(CatalogRepo):
    """
    Dev/test repo. Swap for SQLiteCatalogRepo (or a real DB repo) in deployments.
    """

    def __init__(self, items: List[MenuItem]):
        self._items = list(items)

    def _items_for_restaurant(self, restaurant_id: str) -> List[MenuItem]:
        rid = (restaurant_id or "").strip()
        return [it for it in self._items if it.restaurant_id == rid]

    def get_item(self, *, restaurant_id: str, item_id: str) -> Optional[MenuItem]:
        for it in self._items_for_restaurant(restaurant_id):
            if it.item_id == item_id:
                return it
        return None

    def get_item_by_name(self, *, restaurant_id: str, name: str) -> Optional[MenuItem]:
        n = normalize_item_name(name)
        if not n:
            return None
        for it in self._items_for_restaurant(restaurant_id):
            if normalize_item_name(it.name) == n:
                return it
        return None

    def list_items(
        self,
        *,
        restaurant_id: str,
        category: Optional[str] = None,
        include_unavailable: bool = False,
        limit: int = 50,
    ) -> List[MenuItem]:
        items = self._items_for_restaurant(restaurant_id)

        if not include_unavailable:
            items = [it for it in items if it.available]

        if category:
            c = category.strip().lower()
            items = [it for it in items if it.category.lower() == c]

        items = sorted(items, key=lambda it: it.name.lower())
        return items[: max(1, int(limit))]
