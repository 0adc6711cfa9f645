# utils/logging.py
from __future__ import annotations

import dataclasses
import json
import logging
import os
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

# keys whose values never reach a log line (customer contact details included)
SENSITIVE_KEYS = frozenset({
    "access_token",
    "authorization",
    "api_key",
    "password",
    "secret",
    "cookie",
    "phone",
    "email",
})

MAX_STR = 800
MAX_LIST = 50
MAX_DICT_KEYS = 80
MAX_DEPTH = 6

MASK = "***"
TRUNCATED = "...(truncated)"


def _clip(s: str) -> str:
    return s if len(s) <= MAX_STR else s[:MAX_STR] + TRUNCATED


def _sanitize_mapping(obj: Dict[Any, Any], depth: int) -> Dict[str, Any]:
    keys = list(obj.keys())
    out: Dict[str, Any] = {}
    if len(keys) > MAX_DICT_KEYS:
        keys = keys[:MAX_DICT_KEYS]
        out["_truncated_keys"] = True

    for k in keys:
        name = str(k)
        out[name] = MASK if name.lower() in SENSITIVE_KEYS else _sanitize(obj[k], depth + 1)
    return out


def _sanitize_sequence(obj: Any, depth: int) -> List[Any]:
    items = list(obj)
    out = [_sanitize(x, depth + 1) for x in items[:MAX_LIST]]
    if len(items) > MAX_LIST:
        out.append(TRUNCATED)
    return out


def _sanitize(obj: Any, depth: int = 0) -> Any:
    """
    Payload -> JSON-safe value.
    Bounded in depth/size; sensitive keys are masked at any level.
    """
    if depth > MAX_DEPTH:
        return "...(max_depth)"

    if obj is None or isinstance(obj, (bool, int, float)):
        return obj
    if isinstance(obj, str):
        return _clip(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (bytes, bytearray)):
        return f"<bytes:{len(obj)}>"

    if isinstance(obj, dict):
        return _sanitize_mapping(obj, depth)
    if isinstance(obj, (list, tuple, set, frozenset)):
        return _sanitize_sequence(obj, depth)

    # CartSelection, OrderLine, CustomerAccount ...
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _sanitize_mapping(dataclasses.asdict(obj), depth)

    # EngineError carries its own log shape
    if hasattr(obj, "to_dict") and isinstance(obj, Exception):
        return _sanitize_mapping(obj.to_dict(), depth)
    if isinstance(obj, Exception):
        return {"error_type": type(obj).__name__, "error_message": _clip(str(obj))}

    # pydantic records
    if hasattr(obj, "model_dump"):
        return _sanitize(obj.model_dump(by_alias=True), depth + 1)

    return _clip(str(obj))


def _level_from_env(default: int = logging.INFO) -> int:
    raw = (os.getenv("CART_LOG_LEVEL") or "").strip().upper()
    level = logging.getLevelName(raw) if raw else default
    return level if isinstance(level, int) else default


logger = logging.getLogger("cart_engine")
logger.setLevel(_level_from_env())
logger.propagate = False

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(_handler)


def log_event(
    trace_id: Optional[str],
    stage: str,
    payload: Dict[str, Any],
    level: int = logging.INFO,
) -> None:
    """One JSON line per event: {"trace_id", "stage", "payload"}."""
    if not logger.isEnabledFor(level):
        return
    line = {"trace_id": trace_id, "stage": stage, "payload": _sanitize(payload)}
    logger.log(level, json.dumps(line, ensure_ascii=False))
