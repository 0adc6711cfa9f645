# domain/cart/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import uuid4

from domain.cart.schema import (
    DEFAULT_TOPPING_AMOUNT,
    DEFAULT_TOPPING_CATEGORY,
    ORDER_LINE_COLUMNS,
    UNKNOWN_ITEM_NAME,
)


def build_display_name(item_name: Optional[str], variant_name: Optional[str] = None) -> str:
    """'Large' + 'Pepperoni Pizza' -> 'Large Pepperoni Pizza'"""
    base = (item_name or "").strip() or UNKNOWN_ITEM_NAME
    variant = (variant_name or "").strip()
    return f"{variant} {base}" if variant else base


@dataclass(frozen=True)
class ConfiguredTopping:
    id: str
    name: str
    amount: str = DEFAULT_TOPPING_AMOUNT   # one of TOPPING_AMOUNTS
    price: float = 0.0
    is_default: bool = False               # variant defaults are free unless upgraded
    category: str = DEFAULT_TOPPING_CATEGORY


@dataclass(frozen=True)
class ConfiguredModifier:
    id: str
    name: str
    price_adjustment: float = 0.0          # may be negative


@dataclass
class CartSelection:
    """
    In-progress configuration of one cart line.
    unit_price is the computed price of ONE unit (base + toppings + modifiers).
    """

    menu_item_id: str
    menu_item_name: str
    quantity: int = 1
    unit_price: float = 0.0
    base_price: float = 0.0

    variant_id: Optional[str] = None
    variant_name: Optional[str] = None

    selected_toppings: List[ConfiguredTopping] = field(default_factory=list)
    selected_modifiers: List[ConfiguredModifier] = field(default_factory=list)
    special_instructions: str = ""

    id: str = field(default_factory=lambda: uuid4().hex)
    display_name: str = ""

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = build_display_name(self.menu_item_name, self.variant_name)


@dataclass(frozen=True)
class OrderLine:
    """
    Persisted order line. unit_price/total_price are captured at write time and
    never recomputed from live catalog prices.
    """

    order_id: str
    menu_item_id: str
    quantity: int
    unit_price: float
    total_price: float
    selected_toppings_json: List[Dict[str, Any]] = field(default_factory=list)
    selected_modifiers_json: List[Dict[str, Any]] = field(default_factory=list)
    menu_item_variant_id: Optional[str] = None
    special_instructions: Optional[str] = None

    # populated when read back with joined menu details
    id: Optional[str] = None
    menu_item_name: Optional[str] = None
    variant_name: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Column dict for the order_items table. Blob lists are copied, never shared."""
        record = {col: getattr(self, col) for col in ORDER_LINE_COLUMNS}
        for col in ("selected_toppings_json", "selected_modifiers_json"):
            blob = record[col]
            if isinstance(blob, list):
                record[col] = [dict(e) if isinstance(e, dict) else e for e in blob]
        return record
