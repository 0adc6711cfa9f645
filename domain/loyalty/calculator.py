# domain/loyalty/calculator.py
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from domain.loyalty.config import LoyaltyConfig, default_loyalty_config

ERROR_MINIMUM = "minimum_points"
ERROR_INSUFFICIENT = "insufficient_balance"


class RedemptionStatus(str, Enum):
    IDLE = "idle"
    CALCULATING = "calculating"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class DiscountResult:
    status: RedemptionStatus
    points: int
    discount: float = 0.0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is RedemptionStatus.VALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "points": self.points,
            "discount": self.discount,
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass(frozen=True)
class RedemptionSuggestions:
    """Tiers below the minimum are None (not offered), never zeroed."""

    quarter: Optional[int]
    half: Optional[int]
    max: Optional[int]
    max_points: int
    max_available_discount: float
    enabled: bool

    def offered(self) -> Dict[str, int]:
        tiers = {"quarter": self.quarter, "half": self.half, "max": self.max}
        return {k: v for k, v in tiers.items() if v is not None}


@dataclass(frozen=True)
class LoyaltyRedemption:
    points_to_redeem: int
    discount_amount: float
    conversion_rate: int          # points per $1
    remaining_points: int


# ----------------------------
# input coercion
# ----------------------------

def coerce_points(v: Any) -> int:
    if isinstance(v, bool) or v is None:
        return 0
    if isinstance(v, int):
        return v
    if isinstance(v, float) and math.isfinite(v):
        return int(v)
    if isinstance(v, str):
        try:
            return int(v.strip())
        except ValueError:
            return 0
    return 0


def coerce_money(v: Any) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return 0.0
    f = float(v)
    if not math.isfinite(f):
        return 0.0
    return max(0.0, f)


# ----------------------------
# pure queries
# ----------------------------

def points_to_discount(points: int, config: Optional[LoyaltyConfig] = None) -> float:
    cfg = config or default_loyalty_config()
    return max(0, coerce_points(points)) / cfg.points_per_dollar


def can_redeem(balance: int, config: Optional[LoyaltyConfig] = None) -> bool:
    cfg = config or default_loyalty_config()
    return coerce_points(balance) >= cfg.min_redemption_points


def max_redeemable_points(balance: int, order_total: float, config: Optional[LoyaltyConfig] = None) -> int:
    """min(balance, floor(order_total * rate)), never negative."""
    cfg = config or default_loyalty_config()
    total = coerce_money(order_total)
    try:
        # Decimal(str()) so 1.15 * 20 floors to 23, not 22
        by_total = math.floor(Decimal(str(total)) * cfg.points_per_dollar)
    except InvalidOperation:
        by_total = 0
    return max(0, min(coerce_points(balance), int(by_total)))


def calculate_discount(
    points: Any,
    balance: Any,
    order_total: Any,
    config: Optional[LoyaltyConfig] = None,
) -> DiscountResult:
    """
    0                 -> IDLE, no error
    < minimum         -> INVALID "Minimum N points required"
    > balance         -> INVALID "Only N points available"
    otherwise         -> VALID, discount = min(points / rate, order_total)
    """
    cfg = config or default_loyalty_config()
    p = coerce_points(points)
    bal = max(0, coerce_points(balance))
    total = coerce_money(order_total)

    if p == 0:
        return DiscountResult(status=RedemptionStatus.IDLE, points=0)

    if p < cfg.min_redemption_points:
        return DiscountResult(
            status=RedemptionStatus.INVALID,
            points=p,
            error=f"Minimum {cfg.min_redemption_points} points required",
            error_kind=ERROR_MINIMUM,
        )

    if p > bal:
        return DiscountResult(
            status=RedemptionStatus.INVALID,
            points=p,
            error=f"Only {bal} points available",
            error_kind=ERROR_INSUFFICIENT,
        )

    discount = min(p / cfg.points_per_dollar, total)
    return DiscountResult(status=RedemptionStatus.VALID, points=p, discount=discount)


def generate_suggestions(
    balance: Any,
    order_total: Any,
    config: Optional[LoyaltyConfig] = None,
) -> RedemptionSuggestions:
    cfg = config or default_loyalty_config()
    bal = max(0, coerce_points(balance))
    total = coerce_money(order_total)
    max_points = max_redeemable_points(bal, total, cfg)

    step = cfg.suggestion_step
    quarter = math.floor((max_points * 0.25) / step) * step
    half = math.floor((max_points * 0.5) / step) * step

    def _offer(v: int) -> Optional[int]:
        return v if v >= cfg.min_redemption_points else None

    return RedemptionSuggestions(
        quarter=_offer(quarter),
        half=_offer(half),
        max=_offer(max_points),
        max_points=max_points,
        max_available_discount=min(total, float(bal // cfg.points_per_dollar)),
        enabled=bal >= cfg.min_redemption_points,
    )


def build_redemption(
    result: DiscountResult,
    balance: Any,
    config: Optional[LoyaltyConfig] = None,
) -> Optional[LoyaltyRedemption]:
    """Only a VALID result with a positive discount can be applied to an order."""
    cfg = config or default_loyalty_config()
    if not result.ok or result.discount <= 0:
        return None
    bal = max(0, coerce_points(balance))
    return LoyaltyRedemption(
        points_to_redeem=result.points,
        discount_amount=result.discount,
        conversion_rate=cfg.points_per_dollar,
        remaining_points=max(0, bal - result.points),
    )


def payable_total(order_total: Any, redemption: Optional[LoyaltyRedemption]) -> float:
    total = coerce_money(order_total)
    if redemption is None:
        return total
    return max(0.0, total - redemption.discount_amount)
