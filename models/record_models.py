# models/record_models.py
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.cart.schema import DEFAULT_TOPPING_AMOUNT, DEFAULT_TOPPING_CATEGORY, TOPPING_AMOUNTS


# ----------------------------
# coercion helpers
# ----------------------------

def _coerce_str(v: Any) -> str:
    return v if isinstance(v, str) else "" if v is None else str(v)


def _coerce_optional_str(v: Any) -> Optional[str]:
    s = _coerce_str(v).strip()
    return s or None


def _coerce_number(v: Any, default: float = 0.0) -> float:
    # bool is an int subclass; a stray true/false is not a price
    if isinstance(v, bool) or v is None:
        return default
    if isinstance(v, (int, float)):
        f = float(v)
    elif isinstance(v, str):
        try:
            f = float(v.strip())
        except ValueError:
            return default
    else:
        return default
    return f if math.isfinite(f) else default


def coerce_topping_amount(v: Any) -> str:
    """Unknown / missing amount tiers degrade to 'normal'."""
    if isinstance(v, str):
        s = v.strip().lower()
        if s in TOPPING_AMOUNTS:
            return s
    return DEFAULT_TOPPING_AMOUNT


# ----------------------------
# serialized blob entries
# ----------------------------

class SerializedTopping(BaseModel):
    """One entry of order_items.selected_toppings_json."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    name: str = ""
    amount: str = DEFAULT_TOPPING_AMOUNT
    price: float = 0.0
    is_default: bool = Field(False, alias="isDefault")
    category: str = DEFAULT_TOPPING_CATEGORY

    @field_validator("id", "name", mode="before")
    @classmethod
    def normalize_text(cls, v):
        return _coerce_str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, v):
        return coerce_topping_amount(v)

    @field_validator("price", mode="before")
    @classmethod
    def normalize_price(cls, v):
        return max(0.0, _coerce_number(v))

    @field_validator("is_default", mode="before")
    @classmethod
    def normalize_is_default(cls, v):
        return v if isinstance(v, bool) else False

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        # only an absent category takes the default; stored strings come back as written
        return DEFAULT_TOPPING_CATEGORY if v is None else _coerce_str(v)


class SerializedModifier(BaseModel):
    """One entry of order_items.selected_modifiers_json."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    name: str = ""
    price_adjustment: float = Field(0.0, alias="priceAdjustment")

    @field_validator("id", "name", mode="before")
    @classmethod
    def normalize_text(cls, v):
        return _coerce_str(v)

    @field_validator("price_adjustment", mode="before")
    @classmethod
    def normalize_adjustment(cls, v):
        return _coerce_number(v)


# ----------------------------
# raw order_items row (+ joined menu details)
# ----------------------------

class OrderLineRecord(BaseModel):
    """
    A persisted order line as handed over by the storage layer.
    Blob columns are kept raw (Any); the serializer decides what they mean.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    order_id: Optional[str] = None
    menu_item_id: str = ""
    menu_item_variant_id: Optional[str] = None

    quantity: int = 1
    unit_price: float = 0.0
    total_price: Optional[float] = None

    selected_toppings_json: Any = None
    selected_modifiers_json: Any = None
    special_instructions: Optional[str] = None

    # joined shape: {"menu_item": {"name": ...}, "menu_item_variant": {"name": ...}}
    menu_item: Optional[Dict[str, Any]] = None
    menu_item_variant: Optional[Dict[str, Any]] = None
    # flat shape
    menu_item_name: Optional[str] = None
    variant_name: Optional[str] = None

    @field_validator("id", "order_id", "menu_item_variant_id", "special_instructions",
                     "menu_item_name", "variant_name", mode="before")
    @classmethod
    def normalize_optional_text(cls, v):
        return _coerce_optional_str(v)

    @field_validator("menu_item_id", mode="before")
    @classmethod
    def normalize_menu_item_id(cls, v):
        return _coerce_str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def normalize_quantity(cls, v):
        if isinstance(v, bool):
            return 1
        n = _coerce_number(v, default=1.0)
        if n < 1 or n != int(n):
            return 1
        return int(n)

    @field_validator("unit_price", mode="before")
    @classmethod
    def normalize_unit_price(cls, v):
        return max(0.0, _coerce_number(v))

    @field_validator("total_price", mode="before")
    @classmethod
    def normalize_total_price(cls, v):
        if v is None:
            return None
        return max(0.0, _coerce_number(v))

    @field_validator("menu_item", "menu_item_variant", mode="before")
    @classmethod
    def normalize_joined(cls, v):
        return v if isinstance(v, dict) else None

    @property
    def item_name(self) -> Optional[str]:
        nested = (self.menu_item or {}).get("name")
        return _coerce_optional_str(nested) or self.menu_item_name

    @property
    def item_variant_name(self) -> Optional[str]:
        nested = (self.menu_item_variant or {}).get("name")
        return _coerce_optional_str(nested) or self.variant_name
