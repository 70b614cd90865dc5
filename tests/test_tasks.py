from datetime import timedelta
from decimal import Decimal

import pytest

from pumpfunds.detection.mock_detector import MockDetector
from pumpfunds.models.trade_replications import TradeReplication
from pumpfunds.scheduler import tasks
from pumpfunds.scheduler.celery_app import app
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.signatures import generate_mock_signature


@pytest.fixture(autouse=True)
def task_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(tasks.EngineTask, "session_factory", session_factory)


def test_beat_schedule_covers_all_jobs():
    schedule = app.conf.beat_schedule

    assert {entry["task"] for entry in schedule.values()} == {
        "pumpfunds.scheduler.tasks.process_due_sips",
        "pumpfunds.scheduler.tasks.monitor_trader_wallets",
        "pumpfunds.scheduler.tasks.sweep_trade_replications",
    }
    assert set(app.conf.task_routes) == {entry["task"] for entry in schedule.values()}


def test_process_due_sips_task(make_user, make_fund, make_investment):
    make_investment(make_user(), make_fund(), next_execution_at=utcnow() - timedelta(minutes=1))

    result = tasks.process_due_sips()

    assert result["due"] == 1
    assert result["executed"] == 1


def test_monitor_task_uses_configured_detector(monkeypatch, make_user, make_fund, make_investment):
    make_investment(make_user(), make_fund(), next_execution_at=utcnow() + timedelta(days=1))
    monkeypatch.setattr(tasks, "get_detector", lambda: MockDetector(probability=1.0))

    result = tasks.monitor_trader_wallets()

    assert result["funds_checked"] == 1
    assert result["replications_created"] == 1


def test_sweep_task(db, make_user, make_fund, make_investment):
    investment = make_investment(make_user(), make_fund(), next_execution_at=utcnow())
    db.add(TradeReplication(
        investment_id=investment.id,
        fund_id=investment.fund_id,
        amount=Decimal("1"),
        kind="test",
        status="completed",
        trade_type="buy",
        tx_signature=generate_mock_signature(),
        executed_at=utcnow() - timedelta(days=400),
    ))
    db.commit()

    assert tasks.sweep_trade_replications() == {"deleted": 1, "retention_days": 90}


def test_task_errors_propagate(monkeypatch):
    def broken():
        raise ValueError("Unknown activity detector: carrier-pigeon")

    monkeypatch.setattr(tasks, "get_detector", broken)

    with pytest.raises(ValueError):
        tasks.monitor_trader_wallets()
