import os

# Engine and settings are built at import time; point them at SQLite first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ACTIVITY_DETECTOR"] = "mock"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pumpfunds.models.base import build_engine, build_session_factory
from pumpfunds.models.registry import Base, Fund, Investment, User


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def file_engine(tmp_path):
    """Engine on a SQLite file, with a real connection pool shared across threads."""
    engine = build_engine(f"sqlite:///{tmp_path / 'pumpfunds.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 3, 1, 12, 0, 0))


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(email=None):
        counter["n"] += 1
        user = User(
            email=email or f"investor{counter['n']}@example.com",
            wallet_pubkey=f"InvestorWallet{counter['n']:030d}",
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_fund(db):
    def _make_fund(name="Test Fund", status="active", wallets=("TraderWalletAAA",), **kwargs):
        fund = Fund(
            name=name,
            status=status,
            trader_wallets=list(wallets),
            min_investment=kwargs.pop("min_investment", Decimal("1")),
            **kwargs,
        )
        db.add(fund)
        db.commit()
        return fund

    return _make_fund


@pytest.fixture
def make_investment(db):
    def _make_investment(user, fund, amount="100", kind="recurring", frequency="daily",
                         status="active", next_execution_at=None):
        investment = Investment(
            user_id=user.id,
            fund_id=fund.id,
            amount=Decimal(str(amount)),
            kind=kind,
            frequency=frequency,
            status=status,
            next_execution_at=next_execution_at,
        )
        db.add(investment)
        db.commit()
        return investment

    return _make_investment
