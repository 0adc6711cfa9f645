# seed_menu_db.py
from __future__ import annotations

import json
import os
import sqlite3
from pathlib import Path

from domain.loyalty.ledger_repo import CustomerAccount
from domain.loyalty.ledger_sqlite import SQLiteLoyaltyLedger, init_ledger_schema
from domain.menu.catalog_sqlite import init_sqlite_schema

DB_PATH = os.getenv("CART_MENU_DB_PATH", "data/menu.db")
LEDGER_DB_PATH = os.getenv("LOYALTY_DB_PATH", "data/loyalty.db")


def j(x) -> str:
    return json.dumps(x, ensure_ascii=False)


def seed_rows():
    # shared catalog pieces (examples)
    PIZZA_SIZES = ["small", "medium", "large", "xlarge"]
    PIZZA_CRUSTS = ["thin", "double_dough", "gluten_free"]

    CHEESE = {"id": "top_cheese", "name": "Cheese", "price": 1.50, "category": "cheese", "is_default": True}
    SAUCE = {"id": "top_red_sauce", "name": "Red Sauce", "price": 0.0, "category": "sauce", "is_default": True}
    PEPPERONI = {"id": "top_pepperoni", "name": "Pepperoni", "price": 2.00, "category": "meat"}
    SAUSAGE = {"id": "top_sausage", "name": "Sausage", "price": 2.00, "category": "meat"}
    MUSHROOM = {"id": "top_mushroom", "name": "Mushrooms", "price": 1.25, "category": "veggie"}
    ONION = {"id": "top_onion", "name": "Onions", "price": 1.00, "category": "veggie"}

    WELL_DONE = {"id": "mod_well_done", "name": "Well Done", "price_adjustment": 0.0, "category": "preparation"}
    CUT_SQUARE = {"id": "mod_square_cut", "name": "Square Cut", "price_adjustment": 0.0, "category": "preparation"}
    NO_CHEESE = {"id": "mod_no_cheese", "name": "No Cheese", "price_adjustment": -1.00, "category": "preparation"}

    restaurants = ["rest_01", "rest_02"]

    base_menu = [
        ("cheese_pizza", "Cheese Pizza", "pizza", 12.99, PIZZA_SIZES, PIZZA_CRUSTS,
         [CHEESE, SAUCE, PEPPERONI, SAUSAGE, MUSHROOM, ONION], [WELL_DONE, CUT_SQUARE, NO_CHEESE], 1),
        ("pepperoni_pizza", "Pepperoni Pizza", "pizza", 14.99, PIZZA_SIZES, PIZZA_CRUSTS,
         [CHEESE, SAUCE, dict(PEPPERONI, is_default=True), SAUSAGE, MUSHROOM, ONION], [WELL_DONE, CUT_SQUARE], 1),
        ("stuffed_pizza", "Stuffed Pizza", "pizza", 24.99, PIZZA_SIZES, ["stuffed"],
         [CHEESE, SAUCE, SAUSAGE], [WELL_DONE], 1),
        ("the_chub", "The Chub", "pizza", 27.99, PIZZA_SIZES, ["stuffed"],
         [CHEESE, SAUCE, dict(SAUSAGE, is_default=True), dict(PEPPERONI, is_default=True)], [WELL_DONE], 1),
        ("wings_8pc", "Chicken Wings", "wings", 10.99, ["8pc", "12pc", "16pc"], None, None,
         [{"id": "mod_extra_ranch", "name": "Extra Ranch", "price_adjustment": 0.75, "category": "condiment"}], 1),
        ("garlic_bread", "Garlic Bread", "sides", 5.49, None, None, None, None, 1),
    ]

    rows = []
    for restaurant_id in restaurants:
        for code, name, category, price, sizes, crusts, toppings, modifiers, avail in base_menu:
            item_id = f"{restaurant_id}:{code}"
            rows.append(
                (
                    item_id,
                    restaurant_id,
                    name,
                    category,
                    price,
                    "USD",
                    j(sizes) if sizes else None,
                    j(crusts) if crusts else None,
                    j(toppings) if toppings else None,
                    j(modifiers) if modifiers else None,
                    avail,
                )
            )
    return rows


def seed_customers():
    return [
        CustomerAccount("cust_001", 1000, restaurant_id="rest_01", name="Regular Customer", phone="555-0100"),
        CustomerAccount("cust_002", 50, restaurant_id="rest_01", name="New Customer", phone="555-0101"),
        CustomerAccount("cust_003", 2400, restaurant_id="rest_02", name="Frequent Customer", phone="555-0102"),
    ]


def seed_menu(db_path: str) -> int:
    init_sqlite_schema(db_path)
    conn = sqlite3.connect(db_path)
    try:
        # safe to re-run: existing item_id rows are left alone
        sql = """
        INSERT OR IGNORE INTO menu_items (
            item_id, restaurant_id,
            name, category, base_price, currency,
            sizes_json, crusts_json, toppings_json, modifiers_json,
            available
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        conn.executemany(sql, seed_rows())
        conn.commit()
        return conn.execute("SELECT COUNT(*) FROM menu_items").fetchone()[0]
    finally:
        conn.close()


def seed_ledger(db_path: str) -> int:
    init_ledger_schema(db_path)
    ledger = SQLiteLoyaltyLedger(db_path)
    customers = seed_customers()
    for acct in customers:
        ledger.upsert_customer(acct)
    return len(customers)


def main():
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    Path(LEDGER_DB_PATH).parent.mkdir(parents=True, exist_ok=True)

    count = seed_menu(DB_PATH)
    print(f"[OK] Menu seed complete. menu_items rows = {count}")

    customers = seed_ledger(LEDGER_DB_PATH)
    print(f"[OK] Ledger seed complete. customers = {customers}")


if __name__ == "__main__":
    main()
