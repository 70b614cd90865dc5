from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from pumpfunds.core.investment_manager import (
    InvalidInvestmentState,
    InvestmentManager,
    InvestmentNotFound,
    InvestmentValidationError,
)
from pumpfunds.models.trade_replications import TradeReplication


@pytest.fixture
def manager(db, clock):
    return InvestmentManager(db, clock=clock)


def test_new_sip_fires_after_first_delay(manager, clock, make_user, make_fund):
    investment = manager.create_investment(make_user().id, make_fund().id, "50", "recurring", "weekly")

    assert investment.status == "active"
    assert investment.frequency == "weekly"
    assert investment.amount == Decimal("50")
    assert investment.next_execution_at == clock() + timedelta(hours=24)


def test_lumpsum_is_recorded_immediately(db, manager, clock, make_user, make_fund):
    investment = manager.create_investment(make_user().id, make_fund().id, Decimal("75"), "one-time")

    assert investment.next_execution_at is None
    rows = db.execute(
        select(TradeReplication).where(TradeReplication.investment_id == investment.id)
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].kind == "investment"
    assert rows[0].executed_at == clock()


@pytest.mark.parametrize("amount, kind, frequency", [
    ("0", "recurring", "daily"),
    ("-5", "one-time", None),
    ("abc", "one-time", None),
    ("NaN", "one-time", None),
    ("10", "recurring", None),
    ("10", "recurring", "hourly"),
    ("10", "one-time", "daily"),
    ("10", "forever", None),
])
def test_invalid_terms_are_rejected(manager, make_user, make_fund, amount, kind, frequency):
    with pytest.raises(InvestmentValidationError):
        manager.create_investment(make_user().id, make_fund().id, amount, kind, frequency)


def test_fund_limits_are_enforced(manager, make_user, make_fund):
    user = make_user()
    fund = make_fund(min_investment=Decimal("100"), max_investment=Decimal("1000"))

    with pytest.raises(InvestmentValidationError):
        manager.create_investment(user.id, fund.id, "99", "one-time")
    with pytest.raises(InvestmentValidationError):
        manager.create_investment(user.id, fund.id, "1001", "one-time")
    assert manager.create_investment(user.id, fund.id, "100", "one-time").amount == Decimal("100")


def test_inactive_fund_cannot_be_invested_in(manager, make_user, make_fund):
    fund = make_fund(status="inactive")

    with pytest.raises(InvestmentNotFound):
        manager.create_investment(make_user().id, fund.id, "10", "recurring", "daily")


def test_pause_clears_schedule_and_resume_restarts_from_now(manager, clock, make_user, make_fund,
                                                            make_investment):
    investment = make_investment(make_user(), make_fund(), frequency="monthly",
                                 next_execution_at=clock() - timedelta(days=3))

    paused = manager.pause(investment.id)
    assert paused.status == "paused"
    assert paused.next_execution_at is None

    clock.advance(days=10)
    resumed = manager.resume(investment.id)
    assert resumed.status == "active"
    assert resumed.next_execution_at == clock() + timedelta(days=30)


def test_lifecycle_state_rules(manager, clock, make_user, make_fund, make_investment):
    user, fund = make_user(), make_fund()
    active = make_investment(user, fund, next_execution_at=clock())
    lumpsum = make_investment(user, fund, kind="one-time", frequency=None)

    with pytest.raises(InvalidInvestmentState):
        manager.resume(active.id)
    with pytest.raises(InvalidInvestmentState):
        manager.pause(lumpsum.id)

    manager.cancel(active.id)
    with pytest.raises(InvalidInvestmentState):
        manager.cancel(active.id)
    with pytest.raises(InvalidInvestmentState):
        manager.resume(active.id)

    assert manager.cancel(lumpsum.id).status == "cancelled"


def test_cancel_paused_sip(manager, make_user, make_fund, make_investment):
    investment = make_investment(make_user(), make_fund(), status="paused")

    cancelled = manager.cancel(investment.id)

    assert cancelled.status == "cancelled"
    assert cancelled.next_execution_at is None


def test_operations_are_scoped_to_the_owner(manager, clock, make_user, make_fund, make_investment):
    owner, stranger = make_user(), make_user()
    investment = make_investment(owner, make_fund(), next_execution_at=clock())

    with pytest.raises(InvestmentNotFound):
        manager.pause(investment.id, user_id=stranger.id)
    assert manager.pause(investment.id, user_id=owner.id).status == "paused"


def test_unknown_investment(manager):
    with pytest.raises(InvestmentNotFound):
        manager.cancel(9999)


def test_resume_with_invalid_frequency_is_refused(manager, make_user, make_fund, make_investment):
    investment = make_investment(make_user(), make_fund(), status="paused", frequency=None)

    with pytest.raises(InvalidInvestmentState):
        manager.resume(investment.id)
