# domain/menu/catalog_sqlite.py
from __future__ import annotations

import json
import sqlite3
from typing import Any, List, Optional

from domain.menu.catalog_repo import CatalogRepo, MenuItem


def _safe_str(x: Any) -> str:
    return x if isinstance(x, str) else "" if x is None else str(x)


def _json_loads(s: Optional[str]) -> Any:
    if not s:
        return None
    try:
        return json.loads(s)
    except ValueError:
        return None


def _dict_list(x: Any) -> Optional[List[dict]]:
    if not isinstance(x, list):
        return None
    return [d for d in x if isinstance(d, dict)]


def _str_list(x: Any) -> Optional[List[str]]:
    if not isinstance(x, list):
        return None
    return [_safe_str(s) for s in x if s is not None]


_SELECT = """
SELECT
    item_id, restaurant_id, name, category, base_price, currency,
    sizes_json, crusts_json, toppings_json, modifiers_json, available
FROM menu_items
"""


class SQLiteCatalogRepo(CatalogRepo):
    """
    SQLite-backed menu lookup.
    - Good enough for dev and single-store installs.
    - Moving to Postgres means replacing this class only; cart rules stay as they are.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get_item(self, *, restaurant_id: str, item_id: str) -> Optional[MenuItem]:
        sql = _SELECT + "WHERE restaurant_id = ? AND item_id = ? LIMIT 1"
        conn = self._conn()
        try:
            row = conn.execute(sql, (restaurant_id, item_id)).fetchone()
        finally:
            conn.close()
        return self._row_to_item(row) if row else None

    def get_item_by_name(self, *, restaurant_id: str, name: str) -> Optional[MenuItem]:
        """
        Exact, case-insensitive match.
        name = ? COLLATE NOCASE uses the (restaurant_id, name COLLATE NOCASE) index.
        """
        name = " ".join(_safe_str(name).split())
        if not name:
            return None

        sql = _SELECT + "WHERE restaurant_id = ? AND name = ? COLLATE NOCASE LIMIT 1"
        conn = self._conn()
        try:
            row = conn.execute(sql, (restaurant_id, name)).fetchone()
        finally:
            conn.close()
        return self._row_to_item(row) if row else None

    def list_items(
        self,
        *,
        restaurant_id: str,
        category: Optional[str] = None,
        include_unavailable: bool = False,
        limit: int = 50,
    ) -> List[MenuItem]:
        where = ["restaurant_id = ?"]
        params: List[Any] = [restaurant_id]

        if not include_unavailable:
            where.append("available = 1")

        if category:
            c = category.strip()
            if c:
                where.append("category = ? COLLATE NOCASE")
                params.append(c)

        # ORDER BY keeps LIMIT results stable
        sql = _SELECT + f"WHERE {' AND '.join(where)} ORDER BY name COLLATE NOCASE ASC LIMIT ?"
        params.append(max(1, int(limit)))

        conn = self._conn()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_item(r) for r in rows]

    def _row_to_item(self, row: sqlite3.Row) -> MenuItem:
        return MenuItem(
            item_id=_safe_str(row["item_id"]),
            restaurant_id=_safe_str(row["restaurant_id"]),
            name=_safe_str(row["name"]),
            category=_safe_str(row["category"]),
            base_price=float(row["base_price"]) if row["base_price"] is not None else 0.0,
            currency=_safe_str(row["currency"]) or "USD",
            sizes=_str_list(_json_loads(row["sizes_json"])),
            crusts=_str_list(_json_loads(row["crusts_json"])),
            toppings=_dict_list(_json_loads(row["toppings_json"])),
            modifiers=_dict_list(_json_loads(row["modifiers_json"])),
            available=bool(row["available"]),
        )


def init_sqlite_schema(db_path: str) -> None:
    """
    Menu catalog schema.
    - (restaurant_id, name COLLATE NOCASE) index backs get_item_by_name
    """
    ddl = """
    CREATE TABLE IF NOT EXISTS menu_items (
        item_id TEXT PRIMARY KEY,
        restaurant_id TEXT NOT NULL,

        name TEXT NOT NULL,
        category TEXT NOT NULL,
        base_price REAL NOT NULL DEFAULT 0,
        currency TEXT DEFAULT 'USD',

        sizes_json TEXT,
        crusts_json TEXT,
        toppings_json TEXT,
        modifiers_json TEXT,

        available INTEGER NOT NULL DEFAULT 1
    );

    CREATE INDEX IF NOT EXISTS idx_menu_items_restaurant
    ON menu_items(restaurant_id);

    CREATE INDEX IF NOT EXISTS idx_menu_items_name_nocase
    ON menu_items(restaurant_id, name COLLATE NOCASE);

    CREATE INDEX IF NOT EXISTS idx_menu_items_category_nocase
    ON menu_items(restaurant_id, category COLLATE NOCASE);
    """

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(ddl)
        conn.commit()
    finally:
        conn.close()
