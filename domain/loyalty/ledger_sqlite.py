# domain/loyalty/ledger_sqlite.py
from __future__ import annotations

import sqlite3
from typing import Any, List, Optional

from domain.errors import CustomerNotFoundError
from domain.loyalty.ledger_repo import (
    BalanceChange,
    CustomerAccount,
    LoyaltyLedgerRepo,
    LoyaltyTransaction,
    utc_now_iso,
)


def _safe_str(x: Any) -> str:
    return x if isinstance(x, str) else "" if x is None else str(x)


class SQLiteLoyaltyLedger(LoyaltyLedgerRepo):
    """
    SQLite ledger.
    - apply_points_delta runs under BEGIN IMMEDIATE: the write lock is taken before
      the balance is read, so read -> clamp -> write is serialized per database.
    - audit rows go in their own transaction, after the balance commit.
    """

    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def _conn(self) -> sqlite3.Connection:
        # autocommit mode; transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def upsert_customer(self, account: CustomerAccount) -> None:
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO customers (id, restaurant_id, name, phone, loyalty_points, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    restaurant_id = excluded.restaurant_id,
                    name = excluded.name,
                    phone = excluded.phone,
                    loyalty_points = excluded.loyalty_points,
                    updated_at = excluded.updated_at
                """,
                (
                    account.customer_id,
                    account.restaurant_id,
                    account.name,
                    account.phone,
                    max(0, int(account.loyalty_points)),
                    utc_now_iso(),
                ),
            )
        finally:
            conn.close()

    def get_customer(self, customer_id: str) -> Optional[CustomerAccount]:
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT id, restaurant_id, name, phone, loyalty_points FROM customers WHERE id = ?",
                (customer_id,),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return CustomerAccount(
            customer_id=_safe_str(row["id"]),
            loyalty_points=int(row["loyalty_points"] or 0),
            restaurant_id=row["restaurant_id"],
            name=row["name"],
            phone=row["phone"],
        )

    def apply_points_delta(self, customer_id: str, delta: int) -> BalanceChange:
        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT loyalty_points FROM customers WHERE id = ?",
                (customer_id,),
            ).fetchone()
            if row is None:
                raise CustomerNotFoundError("Customer not found", customer_id=customer_id)

            previous = int(row["loyalty_points"] or 0)
            new_balance = max(0, previous + int(delta))
            conn.execute(
                "UPDATE customers SET loyalty_points = ?, updated_at = ? WHERE id = ?",
                (new_balance, utc_now_iso(), customer_id),
            )
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

        return BalanceChange(
            customer_id=customer_id,
            previous_balance=previous,
            new_balance=new_balance,
            requested_delta=int(delta),
        )

    def record_transaction(self, txn: LoyaltyTransaction) -> LoyaltyTransaction:
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO loyalty_transactions (
                    id, customer_id, order_id,
                    points_earned, points_redeemed, points_delta,
                    transaction_type, description, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    txn.transaction_id,
                    txn.customer_id,
                    txn.order_id,
                    txn.points_earned,
                    txn.points_redeemed,
                    txn.points_delta,
                    txn.transaction_type,
                    txn.description,
                    txn.created_at,
                ),
            )
        finally:
            conn.close()
        return txn

    def list_transactions(self, customer_id: str, limit: int = 20) -> List[LoyaltyTransaction]:
        conn = self._conn()
        try:
            rows = conn.execute(
                """
                SELECT id, customer_id, order_id, points_delta, transaction_type, description, created_at
                FROM loyalty_transactions
                WHERE customer_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (customer_id, max(1, int(limit))),
            ).fetchall()
        finally:
            conn.close()

        return [
            LoyaltyTransaction(
                customer_id=_safe_str(r["customer_id"]),
                points_delta=int(r["points_delta"] or 0),
                transaction_type=_safe_str(r["transaction_type"]),
                description=_safe_str(r["description"]),
                order_id=r["order_id"],
                transaction_id=_safe_str(r["id"]),
                created_at=_safe_str(r["created_at"]),
            )
            for r in rows
        ]


def init_ledger_schema(db_path: str) -> None:
    """
    customers + loyalty_transactions.
    transaction_type is limited to earned/redeemed/adjusted, balances never go negative.
    """
    ddl = """
    CREATE TABLE IF NOT EXISTS customers (
        id TEXT PRIMARY KEY,
        restaurant_id TEXT,
        name TEXT,
        phone TEXT,
        loyalty_points INTEGER NOT NULL DEFAULT 0 CHECK (loyalty_points >= 0),
        updated_at TEXT
    );

    CREATE TABLE IF NOT EXISTS loyalty_transactions (
        id TEXT PRIMARY KEY,
        customer_id TEXT NOT NULL,
        order_id TEXT,
        points_earned INTEGER NOT NULL DEFAULT 0,
        points_redeemed INTEGER NOT NULL DEFAULT 0,
        points_delta INTEGER NOT NULL DEFAULT 0,
        transaction_type TEXT NOT NULL
            CHECK (transaction_type IN ('earned', 'redeemed', 'adjusted')),
        description TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY(customer_id) REFERENCES customers(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_loyalty_transactions_customer
    ON loyalty_transactions(customer_id, created_at);
    """

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(ddl)
        conn.commit()
    finally:
        conn.close()
