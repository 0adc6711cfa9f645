# domain/loyalty/ledger_repo.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from domain.errors import CustomerNotFoundError

TRANSACTION_EARNED = "earned"
TRANSACTION_REDEEMED = "redeemed"
TRANSACTION_ADJUSTED = "adjusted"
TRANSACTION_TYPES = (TRANSACTION_EARNED, TRANSACTION_REDEEMED, TRANSACTION_ADJUSTED)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CustomerAccount:
    customer_id: str
    loyalty_points: int
    restaurant_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class LoyaltyTransaction:
    """Append-only audit row. points_delta is signed (redemptions are negative)."""

    customer_id: str
    points_delta: int
    transaction_type: str
    description: str = ""
    order_id: Optional[str] = None
    transaction_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def points_earned(self) -> int:
        return max(0, self.points_delta)

    @property
    def points_redeemed(self) -> int:
        return max(0, -self.points_delta)


@dataclass(frozen=True)
class BalanceChange:
    customer_id: str
    previous_balance: int
    new_balance: int
    requested_delta: int

    @property
    def applied_delta(self) -> int:
        return self.new_balance - self.previous_balance

    @property
    def clamped(self) -> bool:
        return self.applied_delta != self.requested_delta


class LoyaltyLedgerRepo:
    """
    Customer point balances + loyalty_transactions.

    apply_points_delta MUST be atomic per customer: read balance, clamp
    max(0, balance + delta), write, all inside one transaction/lock, so two
    concurrent redemptions can never both spend the same points.
    """

    def get_customer(self, customer_id: str) -> Optional[CustomerAccount]:
        raise NotImplementedError

    def apply_points_delta(self, customer_id: str, delta: int) -> BalanceChange:
        raise NotImplementedError

    def record_transaction(self, txn: LoyaltyTransaction) -> LoyaltyTransaction:
        raise NotImplementedError

    def list_transactions(self, customer_id: str, limit: int = 20) -> List[LoyaltyTransaction]:
        raise NotImplementedError


class InMemoryLoyaltyLedger(LoyaltyLedgerRepo):
    """Dev/test ledger guarded by a single lock."""

    def __init__(self, accounts: Optional[List[CustomerAccount]] = None):
        self._lock = threading.Lock()
        self._accounts: Dict[str, CustomerAccount] = {a.customer_id: a for a in (accounts or [])}
        self._transactions: List[LoyaltyTransaction] = []

    def add_customer(self, account: CustomerAccount) -> None:
        with self._lock:
            self._accounts[account.customer_id] = account

    def get_customer(self, customer_id: str) -> Optional[CustomerAccount]:
        with self._lock:
            return self._accounts.get(customer_id)

    def apply_points_delta(self, customer_id: str, delta: int) -> BalanceChange:
        with self._lock:
            acct = self._accounts.get(customer_id)
            if acct is None:
                raise CustomerNotFoundError("Customer not found", customer_id=customer_id)
            previous = acct.loyalty_points
            new_balance = max(0, previous + int(delta))
            self._accounts[customer_id] = replace(acct, loyalty_points=new_balance)
            return BalanceChange(
                customer_id=customer_id,
                previous_balance=previous,
                new_balance=new_balance,
                requested_delta=int(delta),
            )

    def record_transaction(self, txn: LoyaltyTransaction) -> LoyaltyTransaction:
        # same rule as the SQLite CHECK constraint
        if txn.transaction_type not in TRANSACTION_TYPES:
            raise ValueError(f"unknown transaction_type {txn.transaction_type!r}")
        with self._lock:
            self._transactions.append(txn)
            return txn

    def list_transactions(self, customer_id: str, limit: int = 20) -> List[LoyaltyTransaction]:
        with self._lock:
            rows = [t for t in self._transactions if t.customer_id == customer_id]
        # newest first
        return list(reversed(rows))[: max(1, int(limit))]
