# domain/loyalty/redemption_session.py
from __future__ import annotations

from typing import Any, Dict, Optional

from domain.errors import ValidationError
from domain.loyalty.calculator import (
    DiscountResult,
    LoyaltyRedemption,
    RedemptionStatus,
    build_redemption,
    calculate_discount,
    coerce_money,
    coerce_points,
    generate_suggestions,
)
from domain.loyalty.config import LoyaltyConfig, default_loyalty_config
from utils.logging import log_event


class RedemptionSession:
    """
    One redemption attempt while the customer/staff edits the points field.

    Idle -> Calculating -> {Valid, Invalid}; entering 0 goes back to Idle.

    Calculation is pure, so callers may run it anywhere (thread, task, remote).
    Each input gets a token; resolve() only applies a result whose token is the
    latest one issued. Slower, older results are dropped: last write wins by input,
    not by arrival order.
    """

    def __init__(
        self,
        *,
        balance: int,
        order_total: float,
        config: Optional[LoyaltyConfig] = None,
        trace_id: Optional[str] = None,
    ):
        self.config = config or default_loyalty_config()
        self.trace_id = trace_id
        self.balance = max(0, coerce_points(balance))
        self.order_total = coerce_money(order_total)

        self.status = RedemptionStatus.IDLE
        self.points_to_redeem = 0
        self.discount = 0.0
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None

        self._token = 0
        self._issued: Dict[int, int] = {}
        self.suggestions = generate_suggestions(self.balance, self.order_total, self.config)

    # ----------------------------
    # input
    # ----------------------------

    @property
    def latest_token(self) -> int:
        return self._token

    def enter_points(self, points: Any) -> int:
        """Record a new input and return its token."""
        p = coerce_points(points)
        self._token += 1
        token = self._token
        # older tokens can never be applied again
        self._issued = {token: p}
        self.points_to_redeem = p

        if p == 0:
            self._apply(DiscountResult(status=RedemptionStatus.IDLE, points=0))
        else:
            self.status = RedemptionStatus.CALCULATING
        return token

    def calculate(self, token: int) -> DiscountResult:
        """Pure calculation for the points recorded under token."""
        if token not in self._issued:
            raise KeyError(f"unknown or superseded token {token}")
        return calculate_discount(self._issued[token], self.balance, self.order_total, self.config)

    def resolve(self, token: int, result: DiscountResult) -> bool:
        """Apply result if it still answers the latest input. Returns False when discarded."""
        if token != self._token or self.status is not RedemptionStatus.CALCULATING or result.points != self.points_to_redeem:
            log_event(self.trace_id, "redemption_result_discarded", {
                "token": token,
                "latest_token": self._token,
                "result_points": result.points,
                "current_points": self.points_to_redeem,
            })
            return False

        self._apply(result)
        log_event(self.trace_id, "redemption_calculated", {"token": token, "result": result.to_dict()})
        return True

    def submit(self, points: Any) -> DiscountResult:
        """enter_points + calculate + resolve in one synchronous step."""
        token = self.enter_points(points)
        if self.status is RedemptionStatus.IDLE:
            return DiscountResult(status=RedemptionStatus.IDLE, points=0)
        result = self.calculate(token)
        self.resolve(token, result)
        return result

    def choose_suggestion(self, tier: str) -> DiscountResult:
        offered = self.suggestions.offered()
        if tier not in offered:
            raise ValidationError(f"'{tier}' suggestion is not available", tier=tier)
        return self.submit(offered[tier])

    def reset(self) -> None:
        self.enter_points(0)

    # ----------------------------
    # context changes (balance reloaded, cart edited)
    # ----------------------------

    def update_context(self, *, balance: Optional[int] = None, order_total: Optional[float] = None) -> Optional[int]:
        """
        Recompute suggestions; any in-flight result is now stale.
        Returns a fresh token to recalculate the current input with, or None when idle.
        """
        if balance is not None:
            self.balance = max(0, coerce_points(balance))
        if order_total is not None:
            self.order_total = coerce_money(order_total)
        self.suggestions = generate_suggestions(self.balance, self.order_total, self.config)

        if self.points_to_redeem == 0:
            self._token += 1
            self._issued = {}
            return None
        return self.enter_points(self.points_to_redeem)

    # ----------------------------
    # output
    # ----------------------------

    @property
    def can_apply(self) -> bool:
        return self.status is RedemptionStatus.VALID and self.discount > 0 and self.error is None

    def to_redemption(self) -> Optional[LoyaltyRedemption]:
        if not self.can_apply:
            return None
        result = DiscountResult(status=self.status, points=self.points_to_redeem, discount=self.discount)
        return build_redemption(result, self.balance, self.config)

    def _apply(self, result: DiscountResult) -> None:
        self.status = result.status
        self.discount = result.discount if result.ok else 0.0
        self.error = result.error
        self.error_kind = result.error_kind
