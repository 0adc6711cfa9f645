from __future__ import annotations

import pytest

from domain.cart.models import CartSelection, ConfiguredModifier, ConfiguredTopping
from domain.loyalty.config import LoyaltyConfig
from domain.loyalty.ledger_repo import CustomerAccount, InMemoryLoyaltyLedger


@pytest.fixture
def toppings():
    return [
        ConfiguredTopping(id="top_cheese", name="Cheese", amount="extra", price=1.5, is_default=True, category="cheese"),
        ConfiguredTopping(id="top_pepperoni", name="Pepperoni", amount="normal", price=2.0, category="meat"),
        ConfiguredTopping(id="top_onion", name="Onions", amount="light", price=1.0, category="veggie"),
    ]


@pytest.fixture
def modifiers():
    return [
        ConfiguredModifier(id="mod_well_done", name="Well Done", price_adjustment=0.0),
        ConfiguredModifier(id="mod_coupon", name="Lunch Special", price_adjustment=-2.5),
    ]


@pytest.fixture
def selection(toppings, modifiers):
    return CartSelection(
        menu_item_id="rest_01:pepperoni_pizza",
        menu_item_name="Pepperoni Pizza",
        variant_id="var_large",
        variant_name="Large",
        quantity=2,
        base_price=18.99,
        unit_price=20.49,
        selected_toppings=toppings,
        selected_modifiers=modifiers,
        special_instructions="ring the bell twice",
    )


@pytest.fixture
def config():
    return LoyaltyConfig()


@pytest.fixture
def ledger():
    return InMemoryLoyaltyLedger([
        CustomerAccount("cust_001", 1000, restaurant_id="rest_01"),
        CustomerAccount("cust_002", 50, restaurant_id="rest_01"),
    ])


@pytest.fixture(autouse=True)
def _clean_loyalty_env(monkeypatch):
    monkeypatch.delenv("LOYALTY_POINTS_PER_DOLLAR", raising=False)
    monkeypatch.delenv("LOYALTY_MIN_REDEMPTION_POINTS", raising=False)
