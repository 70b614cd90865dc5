"""Investment database model."""
from enum import Enum
from sqlalchemy import Column, String, Numeric, TIMESTAMP, Integer, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from pumpfunds.models.base import Base
from pumpfunds.models import funds, users  # noqa: F401 (foreign key targets)


class InvestmentKind(str, Enum):
    RECURRING = "recurring"
    ONE_TIME = "one-time"


class InvestmentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Investment(Base):
    """
    A user's recurring (SIP) or one-time (lumpsum) position in a fund.

    next_execution_at is set exactly when the investment is recurring and
    active; the check constraint keeps the store honest about it.
    """
    __tablename__ = 'investments'
    __table_args__ = (
        CheckConstraint("kind IN ('recurring', 'one-time')", name='ck_investments_kind'),
        CheckConstraint("status IN ('active', 'paused', 'cancelled')", name='ck_investments_status'),
        CheckConstraint(
            "frequency IS NULL OR frequency IN ('daily', 'weekly', 'monthly')",
            name='ck_investments_frequency'
        ),
        CheckConstraint(
            "(kind = 'recurring' AND status = 'active') = (next_execution_at IS NOT NULL)",
            name='ck_investments_schedule'
        ),
    )

    # Primary key
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    fund_id = Column(Integer, ForeignKey('funds.id', ondelete='CASCADE'), nullable=False, index=True)

    # Terms
    kind = Column(String(16), nullable=False)
    amount = Column(Numeric, nullable=False)
    frequency = Column(String(16), index=True)

    # State
    status = Column(String(16), nullable=False, default=InvestmentStatus.ACTIVE.value, index=True)
    next_execution_at = Column(TIMESTAMP, index=True)

    # Audit
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_recurring(self) -> bool:
        return self.kind == InvestmentKind.RECURRING.value

    def __repr__(self):
        return (
            f"<Investment(id={self.id}, kind='{self.kind}', status='{self.status}', "
            f"next_execution_at={self.next_execution_at})>"
        )
