# domain/loyalty/service.py
from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional, Tuple

from domain.cart.pricing import format_money
from domain.errors import CommitConflictError, CustomerNotFoundError, LedgerWriteError, ValidationError
from domain.loyalty.config import LoyaltyConfig, default_loyalty_config
from domain.loyalty.ledger_repo import (
    TRANSACTION_ADJUSTED,
    TRANSACTION_EARNED,
    TRANSACTION_REDEEMED,
    BalanceChange,
    CustomerAccount,
    LoyaltyLedgerRepo,
    LoyaltyTransaction,
)
from domain.loyalty.ledger_sqlite import SQLiteLoyaltyLedger
from utils.logging import log_event
from utils.trace_utils import commit_summary


def default_ledger_repo(db_path: Optional[str] = None) -> LoyaltyLedgerRepo:
    """
    SQLite by default.
    - db_path: argument, else env LOYALTY_DB_PATH, else data/loyalty.db (same as seed_menu_db.py)
    """
    if not db_path:
        db_path = os.getenv("LOYALTY_DB_PATH", "data/loyalty.db")
    return SQLiteLoyaltyLedger(db_path=db_path)


@dataclass(frozen=True)
class CommitResult:
    customer_id: str
    new_balance: int
    previous_balance: int
    points_requested: int
    applied_delta: int
    transaction: Optional[LoyaltyTransaction] = None
    # set when the balance dropped between validation and commit; the clamped debit stands
    conflict: Optional[CommitConflictError] = None

    @property
    def points_debited(self) -> int:
        return max(0, -self.applied_delta)

    @property
    def audit_written(self) -> bool:
        return self.transaction is not None


def _require_int(v: Any, field: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValidationError(f"{field} must be a whole number", field=field)
    return v


def _require_customer(ledger: LoyaltyLedgerRepo, customer_id: str) -> CustomerAccount:
    customer = ledger.get_customer(customer_id)
    if customer is None:
        raise CustomerNotFoundError("Customer not found", customer_id=customer_id)
    return customer


def _apply_and_audit(
    ledger: LoyaltyLedgerRepo,
    customer_id: str,
    delta: int,
    *,
    transaction_type: str,
    describe: Callable[[int], str],
    order_id: Optional[str],
    trace_id: Optional[str],
) -> Tuple[BalanceChange, Optional[LoyaltyTransaction]]:
    """
    Balance first, audit second.
    - balance write fails  -> LedgerWriteError, no audit row
    - audit write fails    -> logged, balance change kept
    """
    try:
        change = ledger.apply_points_delta(customer_id, delta)
    except CustomerNotFoundError:
        raise
    except Exception as e:
        log_event(trace_id, "balance_write_failed", {
            "customer_id": customer_id,
            "delta": delta,
            "error_type": type(e).__name__,
            "error_message": str(e)[:200],
        }, level=logging.ERROR)
        raise LedgerWriteError("Failed to update customer points") from e

    if change.applied_delta == 0:
        return change, None

    txn = LoyaltyTransaction(
        customer_id=customer_id,
        points_delta=change.applied_delta,
        transaction_type=transaction_type,
        description=describe(change.applied_delta),
        order_id=order_id,
    )
    try:
        ledger.record_transaction(txn)
    except Exception as e:
        log_event(trace_id, "audit_write_failed", {
            "customer_id": customer_id,
            "transaction_type": transaction_type,
            "points_delta": change.applied_delta,
            "error_type": type(e).__name__,
            "error_message": str(e)[:200],
        }, level=logging.ERROR)
        return change, None

    return change, txn


def commit_redemption(
    customer_id: str,
    points: int,
    reason: str = "",
    *,
    ledger: LoyaltyLedgerRepo,
    config: Optional[LoyaltyConfig] = None,
    order_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> CommitResult:
    """
    Debit points_to_redeem from the customer's balance and write a 'redeemed' audit row.

    Validation failures leave the balance untouched. The debit itself is
    max(0, balance - points) computed inside the ledger's atomic step, so a
    concurrent debit can shrink what is taken but never push the balance below 0.
    """
    cfg = config or default_loyalty_config()
    p = _require_int(points, "points")

    if p < cfg.min_redemption_points:
        raise ValidationError(f"Minimum {cfg.min_redemption_points} points required", field="points")

    customer = _require_customer(ledger, customer_id)
    if p > customer.loyalty_points:
        raise ValidationError(f"Only {customer.loyalty_points} points available", field="points")

    note = (reason or "").strip()

    def describe(applied: int) -> str:
        n = -applied
        text = f"Redeemed {n} points for {format_money(n / cfg.points_per_dollar)} discount"
        return f"{text}: {note}" if note else text

    change, txn = _apply_and_audit(
        ledger,
        customer_id,
        -p,
        transaction_type=TRANSACTION_REDEEMED,
        describe=describe,
        order_id=order_id,
        trace_id=trace_id,
    )

    conflict = None
    if change.clamped:
        debited = -change.applied_delta
        conflict = CommitConflictError(
            f"Only {debited} of {p} points could be redeemed",
            requested=p,
            debited=debited,
        )
        log_event(trace_id, "commit_conflict", {
            "customer_id": customer_id,
            "validated_balance": customer.loyalty_points,
            "balance_at_commit": change.previous_balance,
            **conflict.to_dict(),
        }, level=logging.WARNING)

    result = CommitResult(
        customer_id=customer_id,
        new_balance=change.new_balance,
        previous_balance=change.previous_balance,
        points_requested=p,
        applied_delta=change.applied_delta,
        transaction=txn,
        conflict=conflict,
    )
    log_event(trace_id, "redemption_committed", {"result": commit_summary(result)})
    return result


def adjust_points(
    customer_id: str,
    delta: int,
    reason: str,
    *,
    ledger: LoyaltyLedgerRepo,
    admin_notes: Optional[str] = None,
    order_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> CommitResult:
    """
    Staff correction (+/-). Same balance-then-audit contract as redemptions;
    a negative adjustment larger than the balance floors at 0.
    """
    d = _require_int(delta, "points_adjustment")
    note = (reason or "").strip()
    if not note:
        raise ValidationError("reason is required", field="reason")

    _require_customer(ledger, customer_id)

    extra = (admin_notes or "").strip()

    def describe(applied: int) -> str:
        return f"Admin adjustment: {note} - {extra}" if extra else f"Admin adjustment: {note}"

    change, txn = _apply_and_audit(
        ledger,
        customer_id,
        d,
        transaction_type=TRANSACTION_ADJUSTED,
        describe=describe,
        order_id=order_id,
        trace_id=trace_id,
    )

    result = CommitResult(
        customer_id=customer_id,
        new_balance=change.new_balance,
        previous_balance=change.previous_balance,
        points_requested=d,
        applied_delta=change.applied_delta,
        transaction=txn,
    )
    log_event(trace_id, "points_adjusted", {"result": commit_summary(result)})
    return result


def points_for_order(order_total: Any, config: Optional[LoyaltyConfig] = None) -> int:
    """floor(order_total * earn rate), computed on the decimal text of the total."""
    cfg = config or default_loyalty_config()
    ok = not isinstance(order_total, bool) and isinstance(order_total, (int, float)) and math.isfinite(order_total)
    if not ok or order_total < 0:
        raise ValidationError("order total must be a non-negative amount", field="order_total")
    return int(math.floor(Decimal(str(order_total)) * cfg.earn_points_per_dollar))


def award_points(
    customer_id: str,
    order_total: float,
    *,
    ledger: LoyaltyLedgerRepo,
    config: Optional[LoyaltyConfig] = None,
    order_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> CommitResult:
    """
    Order reward on completion: credit floor(order_total) points (at the default
    earn rate) and write an 'earned' audit row. Same balance-then-audit contract;
    an order under $1 earns nothing and writes no audit row.
    """
    earned = points_for_order(order_total, config)
    _require_customer(ledger, customer_id)

    change, txn = _apply_and_audit(
        ledger,
        customer_id,
        earned,
        transaction_type=TRANSACTION_EARNED,
        describe=lambda applied: f"Order reward: {applied} points",
        order_id=order_id,
        trace_id=trace_id,
    )

    result = CommitResult(
        customer_id=customer_id,
        new_balance=change.new_balance,
        previous_balance=change.previous_balance,
        points_requested=earned,
        applied_delta=change.applied_delta,
        transaction=txn,
    )
    log_event(trace_id, "points_awarded", {"order_id": order_id, "result": commit_summary(result)})
    return result
