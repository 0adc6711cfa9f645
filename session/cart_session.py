# session/cart_session.py
from __future__ import annotations

import json
import os
import time
from typing import Any, Dict, List, Optional

import redis

from domain.cart.models import CartSelection, OrderLine
from domain.cart.serializer import selection_from_dict, selection_to_dict
from domain.cart.transformer import to_order_line
from utils.logging import log_event


class CartSessionStore:
    """
    Per-session cart (list of CartSelection) kept in Redis.
    - key: cart:session:{restaurant_id}:{session_id}
    - sliding TTL: every read/write extends the cart's life
    - a cart is destroyed on clear() or a successful checkout()
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = "cart:session:",
        ttl_seconds: int = 60 * 60 * 6,
        client: Optional[redis.Redis] = None,
    ):
        if client is None:
            redis_url = redis_url or os.getenv("CART_REDIS_URL", "redis://localhost:6379/0")
            client = redis.Redis.from_url(redis_url, decode_responses=True)
        self.r = client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, restaurant_id: str, session_id: str) -> str:
        rid = (restaurant_id or "default").strip()
        sid = (session_id or "").strip()
        if not sid:
            raise ValueError("session_id is required")
        return f"{self.key_prefix}{rid}:{sid}"

    def _load(self, key: str, trace_id: Optional[str]) -> Dict[str, Any]:
        raw = self.r.get(key)
        if not raw:
            return {"items": [], "created_at": time.time()}
        try:
            state = json.loads(raw)
        except ValueError:
            log_event(trace_id, "cart_state_corrupt", {"redis_key": key})
            return {"items": [], "created_at": time.time()}
        return state if isinstance(state, dict) else {"items": [], "created_at": time.time()}

    def _save(self, key: str, state: Dict[str, Any], trace_id: Optional[str]) -> None:
        st = dict(state)
        st["updated_at"] = time.time()
        st.setdefault("created_at", st["updated_at"])
        self.r.set(key, json.dumps(st, ensure_ascii=False), ex=self.ttl_seconds)
        log_event(trace_id, "cart_saved", {
            "redis_key": key,
            "items": len(st.get("items") or []),
            "ttl_seconds": self.ttl_seconds,
        })

    # ----------------------------
    # reads
    # ----------------------------

    def get_cart(self, restaurant_id: str, session_id: str, trace_id: Optional[str] = None) -> List[CartSelection]:
        key = self._key(restaurant_id, session_id)
        state = self._load(key, trace_id)
        if self.r.exists(key):
            self.r.expire(key, self.ttl_seconds)

        items = state.get("items")
        out: List[CartSelection] = []
        for d in items if isinstance(items, list) else []:
            sel = selection_from_dict(d, trace_id=trace_id)
            if sel is not None:
                out.append(sel)
        return out

    # ----------------------------
    # writes
    # ----------------------------

    def _write_cart(self, restaurant_id: str, session_id: str, items: List[CartSelection], trace_id: Optional[str]) -> None:
        key = self._key(restaurant_id, session_id)
        state = self._load(key, trace_id)
        state["items"] = [selection_to_dict(s) for s in items]
        self._save(key, state, trace_id)

    def add_selection(
        self,
        restaurant_id: str,
        session_id: str,
        selection: CartSelection,
        trace_id: Optional[str] = None,
    ) -> List[CartSelection]:
        items = self.get_cart(restaurant_id, session_id, trace_id=trace_id)
        items.append(selection)
        self._write_cart(restaurant_id, session_id, items, trace_id)
        return items

    def replace_selection(
        self,
        restaurant_id: str,
        session_id: str,
        selection: CartSelection,
        trace_id: Optional[str] = None,
    ) -> List[CartSelection]:
        """Swap the line with the same id (after the configuration UI edited it)."""
        items = self.get_cart(restaurant_id, session_id, trace_id=trace_id)
        items = [selection if s.id == selection.id else s for s in items]
        self._write_cart(restaurant_id, session_id, items, trace_id)
        return items

    def remove_selection(
        self,
        restaurant_id: str,
        session_id: str,
        selection_id: str,
        trace_id: Optional[str] = None,
    ) -> List[CartSelection]:
        items = [s for s in self.get_cart(restaurant_id, session_id, trace_id=trace_id) if s.id != selection_id]
        self._write_cart(restaurant_id, session_id, items, trace_id)
        return items

    def clear(self, restaurant_id: str, session_id: str, trace_id: Optional[str] = None) -> None:
        key = self._key(restaurant_id, session_id)
        self.r.delete(key)
        log_event(trace_id, "cart_cleared", {"redis_key": key})

    def checkout(
        self,
        restaurant_id: str,
        session_id: str,
        order_id: str,
        trace_id: Optional[str] = None,
    ) -> List[OrderLine]:
        """
        Cart -> order lines. All lines are built before the cart is dropped, so
        one invalid line (ValidationError) leaves the cart as it was.
        """
        items = self.get_cart(restaurant_id, session_id, trace_id=trace_id)
        lines = [to_order_line(s, order_id, trace_id=trace_id) for s in items]
        self.clear(restaurant_id, session_id, trace_id=trace_id)
        log_event(trace_id, "cart_checked_out", {"order_id": order_id, "lines": len(lines)})
        return lines
