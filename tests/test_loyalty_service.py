from __future__ import annotations

import threading

import pytest

from domain.errors import CommitConflictError, CustomerNotFoundError, LedgerWriteError, ValidationError
from domain.loyalty import service
from domain.loyalty.ledger_repo import (
    TRANSACTION_ADJUSTED,
    TRANSACTION_EARNED,
    TRANSACTION_REDEEMED,
    CustomerAccount,
    InMemoryLoyaltyLedger,
    LoyaltyTransaction,
)
from domain.loyalty.ledger_sqlite import SQLiteLoyaltyLedger, init_ledger_schema
from domain.loyalty.config import LoyaltyConfig
from domain.loyalty.service import (
    adjust_points,
    award_points,
    commit_redemption,
    default_ledger_repo,
    points_for_order,
)


class RacingLedger(InMemoryLoyaltyLedger):
    """Another till spends points between validation and the debit."""

    def __init__(self, accounts, spent_elsewhere):
        super().__init__(accounts)
        self.spent_elsewhere = spent_elsewhere

    def apply_points_delta(self, customer_id, delta):
        if self.spent_elsewhere:
            spent, self.spent_elsewhere = self.spent_elsewhere, 0
            super().apply_points_delta(customer_id, -spent)
        return super().apply_points_delta(customer_id, delta)


class BrokenBalanceLedger(InMemoryLoyaltyLedger):
    def apply_points_delta(self, customer_id, delta):
        raise RuntimeError("disk I/O error")


class BrokenAuditLedger(InMemoryLoyaltyLedger):
    def record_transaction(self, txn):
        raise RuntimeError("audit table locked")


@pytest.fixture
def sqlite_ledger(tmp_path):
    db = str(tmp_path / "loyalty.db")
    init_ledger_schema(db)
    ledger = SQLiteLoyaltyLedger(db)
    ledger.upsert_customer(CustomerAccount("cust_001", 1000, restaurant_id="rest_01", name="Regular"))
    return ledger


def test_commit_debits_and_audits(ledger, config):
    res = commit_redemption("cust_001", 400, "order discount", ledger=ledger, config=config, order_id="order_1")
    assert res.new_balance == 600
    assert res.previous_balance == 1000
    assert res.points_debited == 400
    assert res.conflict is None
    assert res.audit_written

    txn = res.transaction
    assert txn.transaction_type == TRANSACTION_REDEEMED
    assert txn.points_delta == -400
    assert txn.points_redeemed == 400
    assert txn.order_id == "order_1"
    assert txn.description == "Redeemed 400 points for $20.00 discount: order discount"

    assert ledger.get_customer("cust_001").loyalty_points == 600
    assert ledger.list_transactions("cust_001") == [txn]


def test_commit_description_without_reason(ledger, config):
    res = commit_redemption("cust_001", 150, ledger=ledger, config=config)
    assert res.transaction.description == "Redeemed 150 points for $7.50 discount"


@pytest.mark.parametrize(
    "points, message",
    [
        (50, "Minimum 100 points required"),
        (0, "Minimum 100 points required"),
        (1500, "Only 1000 points available"),
    ],
)
def test_rejected_commit_leaves_balance_untouched(ledger, config, points, message):
    with pytest.raises(ValidationError, match=message):
        commit_redemption("cust_001", points, ledger=ledger, config=config)
    assert ledger.get_customer("cust_001").loyalty_points == 1000
    assert ledger.list_transactions("cust_001") == []


@pytest.mark.parametrize("points", ["200", 200.0, None, True])
def test_points_must_be_whole_number(ledger, config, points):
    with pytest.raises(ValidationError, match="points must be a whole number"):
        commit_redemption("cust_001", points, ledger=ledger, config=config)


def test_unknown_customer(ledger, config):
    with pytest.raises(CustomerNotFoundError) as exc:
        commit_redemption("cust_404", 200, ledger=ledger, config=config)
    assert exc.value.to_dict()["customer_id"] == "cust_404"


def test_concurrent_debit_is_clamped_and_reported(config):
    ledger = RacingLedger([CustomerAccount("cust_001", 500)], spent_elsewhere=300)
    res = commit_redemption("cust_001", 400, ledger=ledger, config=config)

    assert res.new_balance == 0
    assert res.previous_balance == 200
    assert res.points_debited == 200
    assert isinstance(res.conflict, CommitConflictError)
    assert res.conflict.retryable is True
    assert res.conflict.to_dict()["debited"] == 200
    assert res.transaction.points_delta == -200
    assert res.transaction.description == "Redeemed 200 points for $10.00 discount"


def test_balance_write_failure_writes_no_audit(config, monkeypatch):
    seen = []
    monkeypatch.setattr(service, "log_event", lambda trace_id, stage, payload, **kw: seen.append(stage))
    ledger = BrokenBalanceLedger([CustomerAccount("cust_001", 1000)])

    with pytest.raises(LedgerWriteError, match="Failed to update customer points"):
        commit_redemption("cust_001", 200, ledger=ledger, config=config)

    assert ledger.list_transactions("cust_001") == []
    assert ledger.get_customer("cust_001").loyalty_points == 1000
    assert seen == ["balance_write_failed"]


def test_audit_failure_keeps_balance_change(config, monkeypatch):
    seen = []
    monkeypatch.setattr(service, "log_event", lambda trace_id, stage, payload, **kw: seen.append(stage))
    ledger = BrokenAuditLedger([CustomerAccount("cust_001", 1000)])

    res = commit_redemption("cust_001", 200, ledger=ledger, config=config)

    assert res.new_balance == 800
    assert res.transaction is None
    assert not res.audit_written
    assert ledger.get_customer("cust_001").loyalty_points == 800
    assert seen == ["audit_write_failed", "redemption_committed"]


def test_adjust_points_up_and_down(ledger):
    up = adjust_points("cust_002", 250, "missed earn", ledger=ledger, admin_notes="order 17")
    assert up.new_balance == 300
    assert up.transaction.transaction_type == TRANSACTION_ADJUSTED
    assert up.transaction.points_delta == 250
    assert up.transaction.description == "Admin adjustment: missed earn - order 17"

    down = adjust_points("cust_002", -100, "duplicate earn", ledger=ledger)
    assert down.new_balance == 200
    assert down.transaction.description == "Admin adjustment: duplicate earn"


def test_negative_adjustment_floors_at_zero(ledger):
    res = adjust_points("cust_002", -500, "fraud reversal", ledger=ledger)
    assert res.new_balance == 0
    assert res.applied_delta == -50
    assert res.transaction.points_delta == -50


def test_noop_adjustment_writes_no_audit(ledger):
    res = adjust_points("cust_001", 0, "checking", ledger=ledger)
    assert res.new_balance == 1000
    assert res.transaction is None
    assert ledger.list_transactions("cust_001") == []


@pytest.mark.parametrize("reason", ["", "   ", None])
def test_adjustment_requires_reason(ledger, reason):
    with pytest.raises(ValidationError, match="reason is required"):
        adjust_points("cust_001", 10, reason, ledger=ledger)


def test_sqlite_commit_and_history(sqlite_ledger, config):
    commit_redemption("cust_001", 200, ledger=sqlite_ledger, config=config, order_id="order_1")
    adjust_points("cust_001", 50, "goodwill", ledger=sqlite_ledger)

    assert sqlite_ledger.get_customer("cust_001").loyalty_points == 850
    history = sqlite_ledger.list_transactions("cust_001")
    assert [t.transaction_type for t in history] == [TRANSACTION_ADJUSTED, TRANSACTION_REDEEMED]
    assert [t.points_delta for t in history] == [50, -200]
    assert history[1].order_id == "order_1"


def test_sqlite_unknown_customer(sqlite_ledger):
    assert sqlite_ledger.get_customer("nobody") is None
    with pytest.raises(CustomerNotFoundError):
        sqlite_ledger.apply_points_delta("nobody", -10)


def test_sqlite_concurrent_commits_never_overspend(sqlite_ledger, config):
    outcomes = []
    lock = threading.Lock()

    def spend():
        try:
            res = commit_redemption("cust_001", 300, ledger=sqlite_ledger, config=config)
        except ValidationError:
            return
        with lock:
            outcomes.append(res)

    threads = [threading.Thread(target=spend) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    final = sqlite_ledger.get_customer("cust_001").loyalty_points
    assert final >= 0
    assert final == 1000 - sum(r.points_debited for r in outcomes)
    audited = sum(t.points_redeemed for t in sqlite_ledger.list_transactions("cust_001", limit=50))
    assert audited == 1000 - final


def test_in_memory_concurrent_commits_never_overspend(config):
    ledger = InMemoryLoyaltyLedger([CustomerAccount("cust_001", 1000)])
    threads = [
        threading.Thread(target=lambda: _try_commit(ledger, config))
        for _ in range(10)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    final = ledger.get_customer("cust_001").loyalty_points
    assert final >= 0
    assert sum(t.points_redeemed for t in ledger.list_transactions("cust_001", limit=50)) == 1000 - final


def _try_commit(ledger, config):
    try:
        commit_redemption("cust_001", 300, ledger=ledger, config=config)
    except ValidationError:
        pass


def test_default_ledger_repo_reads_env(monkeypatch, tmp_path):
    path = str(tmp_path / "x.db")
    monkeypatch.setenv("LOYALTY_DB_PATH", path)
    repo = default_ledger_repo()
    assert isinstance(repo, SQLiteLoyaltyLedger)
    assert repo.db_path == path


def test_award_points_credits_whole_dollars(ledger, monkeypatch):
    seen = []
    monkeypatch.setattr(service, "log_event", lambda trace_id, stage, payload, **kw: seen.append((stage, payload)))

    res = award_points("cust_002", 23.75, ledger=ledger, order_id="order_5")

    assert res.previous_balance == 50
    assert res.new_balance == 73
    assert res.applied_delta == 23
    assert res.points_debited == 0
    txn = res.transaction
    assert txn.transaction_type == TRANSACTION_EARNED
    assert txn.points_delta == 23
    assert txn.points_earned == 23
    assert txn.description == "Order reward: 23 points"
    assert txn.order_id == "order_5"
    assert ledger.list_transactions("cust_002") == [txn]
    assert [stage for stage, _ in seen] == ["points_awarded"]
    assert seen[0][1]["order_id"] == "order_5"


def test_sqlite_award_and_history(sqlite_ledger):
    res = award_points("cust_001", 42.10, ledger=sqlite_ledger, order_id="order_9")
    assert res.new_balance == 1042
    assert sqlite_ledger.get_customer("cust_001").loyalty_points == 1042

    (txn,) = sqlite_ledger.list_transactions("cust_001")
    assert txn.transaction_type == TRANSACTION_EARNED
    assert txn.points_earned == 42
    assert txn.points_delta == 42
    assert txn.description == "Order reward: 42 points"
    assert txn.order_id == "order_9"


def test_order_under_a_dollar_earns_nothing(ledger):
    res = award_points("cust_002", 0.99, ledger=ledger)
    assert res.new_balance == 50
    assert res.transaction is None
    assert ledger.list_transactions("cust_002") == []


@pytest.mark.parametrize("total", [-1, "20", None, True, float("nan"), float("inf")])
def test_award_rejects_bad_totals(ledger, total):
    with pytest.raises(ValidationError, match="order total must be a non-negative amount"):
        award_points("cust_002", total, ledger=ledger)
    assert ledger.get_customer("cust_002").loyalty_points == 50


def test_award_unknown_customer(ledger):
    with pytest.raises(CustomerNotFoundError):
        award_points("cust_404", 30.0, ledger=ledger)


def test_award_audit_failure_keeps_credit(monkeypatch):
    monkeypatch.setattr(service, "log_event", lambda *a, **kw: None)
    ledger = BrokenAuditLedger([CustomerAccount("cust_001", 10)])

    res = award_points("cust_001", 15.0, ledger=ledger)

    assert res.new_balance == 25
    assert not res.audit_written
    assert ledger.get_customer("cust_001").loyalty_points == 25


def test_earn_rate_comes_from_config(ledger):
    cfg = LoyaltyConfig(earn_points_per_dollar=2)
    assert points_for_order(19.99, cfg) == 39
    assert award_points("cust_002", 10.5, ledger=ledger, config=cfg).new_balance == 71


@pytest.mark.parametrize("total, points", [(19.99, 19), (20, 20), (0, 0), (0.1 + 0.2, 0), (100.0, 100)])
def test_points_for_order_floors(total, points):
    assert points_for_order(total) == points


def test_in_memory_ledger_rejects_unknown_transaction_type(ledger):
    with pytest.raises(ValueError, match="unknown transaction_type"):
        ledger.record_transaction(LoyaltyTransaction(customer_id="cust_001", points_delta=5, transaction_type="gifted"))
