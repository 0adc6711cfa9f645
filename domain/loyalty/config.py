# domain/loyalty/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from utils.logging import log_event

DEFAULT_POINTS_PER_DOLLAR = 20        # 20 points = $1
DEFAULT_MIN_REDEMPTION_POINTS = 100
DEFAULT_SUGGESTION_STEP = 100         # quarter/half suggestions round down to this
DEFAULT_EARN_POINTS_PER_DOLLAR = 1    # order reward: 1 point per whole dollar spent


@dataclass(frozen=True)
class LoyaltyConfig:
    """
    Earn and redemption constants. One instance per restaurant if they ever differ;
    every calculator/service call takes it explicitly.
    """

    points_per_dollar: int = DEFAULT_POINTS_PER_DOLLAR
    min_redemption_points: int = DEFAULT_MIN_REDEMPTION_POINTS
    suggestion_step: int = DEFAULT_SUGGESTION_STEP
    earn_points_per_dollar: int = DEFAULT_EARN_POINTS_PER_DOLLAR

    def __post_init__(self) -> None:
        for name in ("points_per_dollar", "min_redemption_points", "suggestion_step", "earn_points_per_dollar"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
                raise ValueError(f"{name} must be a positive integer, got {v!r}")


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        v = int(raw.strip())
    except ValueError:
        v = 0
    if v <= 0:
        log_event(None, "loyalty_config_invalid", {"key": key, "value": raw, "fallback": default}, level=logging.WARNING)
        return default
    return v


def default_loyalty_config(
    *,
    points_per_dollar: Optional[int] = None,
    min_redemption_points: Optional[int] = None,
) -> LoyaltyConfig:
    """
    Explicit args > env (LOYALTY_POINTS_PER_DOLLAR / LOYALTY_MIN_REDEMPTION_POINTS) > defaults.
    """
    return LoyaltyConfig(
        points_per_dollar=points_per_dollar or _env_int("LOYALTY_POINTS_PER_DOLLAR", DEFAULT_POINTS_PER_DOLLAR),
        min_redemption_points=min_redemption_points
        or _env_int("LOYALTY_MIN_REDEMPTION_POINTS", DEFAULT_MIN_REDEMPTION_POINTS),
    )
