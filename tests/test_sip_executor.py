import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy import select

from pumpfunds.core import sip_executor
from pumpfunds.core.investment_manager import InvestmentManager
from pumpfunds.core.sip_executor import SipExecutor
from pumpfunds.core.sip_selector import DueSipSelector
from pumpfunds.models.base import build_session_factory
from pumpfunds.models.funds import Fund
from pumpfunds.models.investments import Investment
from pumpfunds.models.users import User
from pumpfunds.models.trade_replications import TradeReplication


def _ledger(db, investment_id=None):
    db.expire_all()
    stmt = select(TradeReplication)
    if investment_id is not None:
        stmt = stmt.where(TradeReplication.investment_id == investment_id)
    return db.execute(stmt).scalars().all()


def _reload(db, investment):
    db.expire_all()
    return db.get(Investment, investment.id)


def _select_due(session_factory, now):
    session = session_factory()
    try:
        return DueSipSelector(session).fetch_due(now)
    finally:
        session.close()


def test_daily_sip_end_to_end(db, session_factory, clock, make_user, make_fund, make_investment):
    scheduled = clock()
    investment = make_investment(make_user(), make_fund(), amount="250.5", next_execution_at=scheduled)

    clock.advance(minutes=2)
    result = SipExecutor(session_factory, clock=clock).run_cycle()

    assert result.due == 1
    assert result.executed == 1
    assert _reload(db, investment).next_execution_at == scheduled + timedelta(hours=24)

    rows = _ledger(db, investment.id)
    assert len(rows) == 1
    row = rows[0]
    assert row.kind == "sip_execution"
    assert row.status == "completed"
    assert row.trade_type == "buy"
    assert Decimal(str(row.amount)) == Decimal("250.5")
    assert row.fund_id == investment.fund_id
    assert row.executed_at == clock()
    assert len(row.tx_signature) == 88


def test_each_due_sip_gets_one_row_and_one_period(db, session_factory, clock, make_user, make_fund,
                                                  make_investment):
    user, fund = make_user(), make_fund()
    now = clock()
    daily = make_investment(user, fund, frequency="daily", next_execution_at=now - timedelta(minutes=5))
    weekly = make_investment(user, fund, frequency="weekly", next_execution_at=now - timedelta(minutes=1))
    monthly = make_investment(user, fund, frequency="monthly", next_execution_at=now)

    SipExecutor(session_factory, clock=clock).run_cycle()

    assert _reload(db, daily).next_execution_at == now - timedelta(minutes=5) + timedelta(days=1)
    assert _reload(db, weekly).next_execution_at == now - timedelta(minutes=1) + timedelta(days=7)
    assert _reload(db, monthly).next_execution_at == now + timedelta(days=30)

    signatures = [row.tx_signature for row in _ledger(db)]
    assert len(signatures) == 3
    assert len(set(signatures)) == 3


def test_second_cycle_in_same_window_does_nothing(db, session_factory, clock, make_user, make_fund,
                                                  make_investment):
    investment = make_investment(make_user(), make_fund(), next_execution_at=clock())
    executor = SipExecutor(session_factory, clock=clock)

    executor.run_cycle()
    clock.advance(minutes=5)
    second = executor.run_cycle()

    assert second.due == 0
    assert len(_ledger(db, investment.id)) == 1


def test_unanchored_mode_schedules_from_now(db, session_factory, clock, make_user, make_fund, make_investment):
    investment = make_investment(make_user(), make_fund(), next_execution_at=clock() - timedelta(hours=3))

    SipExecutor(session_factory, clock=clock, anchor_to_schedule=False).run_cycle()

    assert _reload(db, investment).next_execution_at == clock() + timedelta(hours=24)


def test_overlapping_executions_advance_once(db, session_factory, clock, make_user, make_fund, make_investment):
    investment = make_investment(make_user(), make_fund(), next_execution_at=clock())

    # Both runs select the same due row before either executes
    snapshot_a = _select_due(session_factory, clock())[0]
    snapshot_b = _select_due(session_factory, clock())[0]

    first = SipExecutor(session_factory, clock=clock).execute(snapshot_a)
    second = SipExecutor(session_factory, clock=clock).execute(snapshot_b)

    assert first.outcome == "executed"
    assert second.outcome == "skipped"
    assert len(_ledger(db, investment.id)) == 1
    assert _reload(db, investment).next_execution_at == first.next_execution_at


def test_paused_sip_is_not_selected_however_overdue(db, session_factory, clock, make_user, make_fund,
                                                    make_investment):
    investment = make_investment(make_user(), make_fund(), next_execution_at=clock() - timedelta(days=40))
    InvestmentManager(db, clock=clock).pause(investment.id)

    result = SipExecutor(session_factory, clock=clock).run_cycle()

    assert result.due == 0
    assert _ledger(db) == []
    assert _reload(db, investment).next_execution_at is None


def test_cancel_between_selection_and_execution_is_skipped(db, session_factory, clock, make_user, make_fund,
                                                           make_investment):
    user, fund = make_user(), make_fund()
    cancelled = make_investment(user, fund, next_execution_at=clock())
    kept = make_investment(user, fund, next_execution_at=clock())

    snapshots = _select_due(session_factory, clock())
    InvestmentManager(db, clock=clock).cancel(cancelled.id)

    executor = SipExecutor(session_factory, clock=clock)
    outcomes = {s.investment_id: executor.execute(s).outcome for s in snapshots}

    assert outcomes == {cancelled.id: "skipped", kept.id: "executed"}
    assert _ledger(db, cancelled.id) == []
    assert len(_ledger(db, kept.id)) == 1


def test_fund_deactivated_after_selection_is_skipped(db, session_factory, clock, make_user, make_fund,
                                                     make_investment):
    fund = make_fund()
    investment = make_investment(make_user(), fund, next_execution_at=clock())
    snapshot = _select_due(session_factory, clock())[0]

    db.get(Fund, fund.id).status = "inactive"
    db.commit()

    outcome = SipExecutor(session_factory, clock=clock).execute(snapshot)

    assert outcome.outcome == "skipped"
    assert _reload(db, investment).next_execution_at == clock()
    assert _ledger(db) == []


def test_invalid_frequency_is_logged_and_skipped(db, session_factory, clock, make_user, make_fund,
                                                 make_investment):
    user, fund = make_user(), make_fund()
    broken = make_investment(user, fund, frequency=None, next_execution_at=clock())
    healthy = make_investment(user, fund, next_execution_at=clock())

    result = SipExecutor(session_factory, clock=clock).run_cycle()

    assert result.invalid == 1
    assert result.executed == 1
    assert _reload(db, broken).next_execution_at == clock()
    assert _ledger(db, broken.id) == []
    assert len(_ledger(db, healthy.id)) == 1


def test_store_failure_rolls_back_only_that_investment(db, session_factory, clock, make_user, make_fund,
                                                       make_investment, monkeypatch):
    user, fund = make_user(), make_fund()
    first = make_investment(user, fund, next_execution_at=clock())
    second = make_investment(user, fund, next_execution_at=clock())

    # Duplicate signatures make the second ledger insert violate uniqueness
    monkeypatch.setattr(sip_executor, "generate_mock_signature", lambda: "S" * 88)

    result = SipExecutor(session_factory, clock=clock).run_cycle()

    assert result.executed == 1
    assert result.failed == 1
    rows = _ledger(db)
    assert len(rows) == 1
    advanced = rows[0].investment_id
    stuck = second.id if advanced == first.id else first.id
    db.expire_all()
    assert db.get(Investment, stuck).next_execution_at == clock()
    assert db.get(Investment, advanced).next_execution_at == clock() + timedelta(days=1)


def test_time_limit_stops_the_cycle(db, session_factory, clock, make_user, make_fund, make_investment,
                                    monkeypatch):
    user, fund = make_user(), make_fund()
    for _ in range(3):
        make_investment(user, fund, next_execution_at=clock())
    attempted = []

    def out_of_time(self, due, now=None):
        attempted.append(due.investment_id)
        raise SoftTimeLimitExceeded()

    monkeypatch.setattr(SipExecutor, "execute", out_of_time)

    with pytest.raises(SoftTimeLimitExceeded):
        SipExecutor(session_factory, clock=clock).run_cycle()
    assert len(attempted) == 1
    assert _ledger(db) == []


def test_parallel_executions_of_one_snapshot_charge_once(file_engine, clock):
    session_factory = build_session_factory(file_engine)
    with session_factory() as db:
        user = User(email="parallel@example.com", wallet_pubkey="ParallelWallet00000000000000000")
        fund = Fund(name="Parallel Fund", status="active", trader_wallets=["TraderWalletAAA"],
                    min_investment=Decimal("1"))
        db.add_all([user, fund])
        db.flush()
        investment = Investment(user_id=user.id, fund_id=fund.id, amount=Decimal("25"), kind="recurring",
                                frequency="daily", status="active", next_execution_at=clock())
        db.add(investment)
        db.commit()
        investment_id = investment.id

    snapshot = _select_due(session_factory, clock())[0]
    start = threading.Barrier(2)
    outcomes = []
    errors = []

    def run():
        executor = SipExecutor(session_factory, clock=clock)
        start.wait()
        try:
            outcomes.append(executor.execute(snapshot).outcome)
        except Exception as e:
            errors.append(e)

    workers = [threading.Thread(target=run) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)

    assert errors == []
    assert sorted(outcomes) == ["executed", "skipped"]
    with session_factory() as db:
        rows = db.execute(
            select(TradeReplication).where(TradeReplication.investment_id == investment_id)
        ).scalars().all()
        assert len(rows) == 1
        assert db.get(Investment, investment_id).next_execution_at == clock() + timedelta(days=1)
