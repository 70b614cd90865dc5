"""
Investment lifecycle operations.

Entry points used by the HTTP layer: create, pause, resume and cancel. The
caller has already authorised the user; passing user_id additionally
restricts the operation to that owner's investments.
"""
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from pumpfunds.core.schedule import period_for, resume_execution_at
from pumpfunds.models.funds import Fund, FundStatus
from pumpfunds.models.investments import Investment, InvestmentKind, InvestmentStatus, Frequency
from pumpfunds.models.trade_replications import (
    TradeReplication, ReplicationKind, ReplicationStatus, TradeDirection
)
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.logging import get_logger
from pumpfunds.utils.metrics import record_trade_replication
from pumpfunds.utils.signatures import generate_mock_signature
from config.settings import get_scheduler_config

logger = get_logger(__name__)


class InvestmentNotFound(ValueError):
    """No investment matches the id (and owner, when given)."""


class InvalidInvestmentState(ValueError):
    """The investment is not in a state that allows the operation."""


class InvestmentValidationError(ValueError):
    """The requested investment terms are not acceptable."""


class InvestmentManager:
    """
    Applies user-initiated lifecycle changes while keeping the schedule
    invariant: next_execution_at is set iff the investment is recurring and
    active.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        first_sip_delay: Optional[timedelta] = None
    ):
        self.db = db
        self.clock = clock
        if first_sip_delay is None:
            first_sip_delay = timedelta(hours=get_scheduler_config()['sip']['first_sip_delay_hours'])
        self.first_sip_delay = first_sip_delay

    def create_investment(
        self,
        user_id: int,
        fund_id: int,
        amount,
        kind: str,
        frequency: Optional[str] = None
    ) -> Investment:
        """
        Open a new SIP or lumpsum investment.

        A recurring investment first fires after the configured delay. A
        one-time investment is recorded in the ledger immediately, in the
        same transaction.

        Raises:
            InvestmentValidationError: bad kind/frequency/amount or fund limits
            InvestmentNotFound: fund missing or not active
        """
        kind = getattr(kind, 'value', kind)
        frequency = getattr(frequency, 'value', frequency)

        if kind not in (InvestmentKind.RECURRING.value, InvestmentKind.ONE_TIME.value):
            raise InvestmentValidationError(f"Unknown investment kind: {kind!r}")

        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise InvestmentValidationError(f"Invalid amount: {amount!r}")
        if not amount.is_finite() or amount <= 0:
            raise InvestmentValidationError("Amount must be positive")

        if kind == InvestmentKind.RECURRING.value:
            if frequency is None:
                raise InvestmentValidationError("Frequency is required for SIP investments")
            if frequency not in {f.value for f in Frequency}:
                raise InvestmentValidationError(f"Unknown frequency: {frequency!r}")
        elif frequency is not None:
            raise InvestmentValidationError("Frequency only applies to SIP investments")

        fund = self.db.execute(
            select(Fund).where(Fund.id == fund_id, Fund.status == FundStatus.ACTIVE.value)
        ).scalar_one_or_none()
        if fund is None:
            raise InvestmentNotFound(f"Active fund {fund_id} not found")

        if fund.min_investment is not None and amount < Decimal(str(fund.min_investment)):
            raise InvestmentValidationError(f"Minimum investment is {fund.min_investment}")
        if fund.max_investment is not None and amount > Decimal(str(fund.max_investment)):
            raise InvestmentValidationError(f"Maximum investment is {fund.max_investment}")

        now = self.clock()
        investment = Investment(
            user_id=user_id,
            fund_id=fund_id,
            amount=amount,
            kind=kind,
            frequency=frequency,
            status=InvestmentStatus.ACTIVE.value,
            next_execution_at=now + self.first_sip_delay if kind == InvestmentKind.RECURRING.value else None,
        )
        self.db.add(investment)

        try:
            self.db.flush()
            if kind == InvestmentKind.ONE_TIME.value:
                self.db.add(TradeReplication(
                    investment_id=investment.id,
                    fund_id=fund_id,
                    amount=amount,
                    kind=ReplicationKind.INVESTMENT.value,
                    status=ReplicationStatus.COMPLETED.value,
                    trade_type=TradeDirection.BUY.value,
                    tx_signature=generate_mock_signature(),
                    executed_at=now,
                ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if kind == InvestmentKind.ONE_TIME.value:
            record_trade_replication(ReplicationKind.INVESTMENT.value)

        logger.info(
            "Investment created",
            investment_id=investment.id,
            user_id=user_id,
            fund_id=fund_id,
            kind=kind,
            frequency=frequency,
            amount=str(amount)
        )
        return investment

    def pause(self, investment_id: int, user_id: Optional[int] = None) -> Investment:
        """
        Pause an active SIP. Its schedule is cleared, so it drops out of due
        selection however overdue it was.
        """
        investment = self._load(investment_id, user_id)
        if not investment.is_recurring or investment.status != InvestmentStatus.ACTIVE.value:
            raise InvalidInvestmentState(f"Investment {investment_id} is not an active SIP")

        investment.status = InvestmentStatus.PAUSED.value
        investment.next_execution_at = None
        self._commit()

        logger.info("SIP investment paused", investment_id=investment_id)
        return investment

    def resume(self, investment_id: int, user_id: Optional[int] = None) -> Investment:
        """
        Resume a paused SIP. The next firing is one full period from now;
        executions missed while paused are not backfilled.
        """
        investment = self._load(investment_id, user_id)
        if not investment.is_recurring or investment.status != InvestmentStatus.PAUSED.value:
            raise InvalidInvestmentState(f"Investment {investment_id} is not a paused SIP")

        try:
            period_for(investment.frequency)
        except ValueError:
            logger.error(
                "Paused SIP has invalid frequency",
                investment_id=investment_id,
                frequency=investment.frequency
            )
            raise InvalidInvestmentState(f"Investment {investment_id} has no valid frequency")

        investment.status = InvestmentStatus.ACTIVE.value
        investment.next_execution_at = resume_execution_at(investment.frequency, self.clock())
        self._commit()

        logger.info(
            "SIP investment resumed",
            investment_id=investment_id,
            next_execution_at=investment.next_execution_at.isoformat()
        )
        return investment

    def cancel(self, investment_id: int, user_id: Optional[int] = None) -> Investment:
        """Cancel an active or paused investment of either kind."""
        investment = self._load(investment_id, user_id)
        if investment.status == InvestmentStatus.CANCELLED.value:
            raise InvalidInvestmentState(f"Investment {investment_id} is already cancelled")

        investment.status = InvestmentStatus.CANCELLED.value
        investment.next_execution_at = None
        self._commit()

        logger.info("Investment cancelled", investment_id=investment_id)
        return investment

    def _load(self, investment_id: int, user_id: Optional[int]) -> Investment:
        stmt = (
            select(Investment)
            .where(Investment.id == investment_id)
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(Investment.user_id == user_id)
        if self.db.get_bind().dialect.name == 'postgresql':
            stmt = stmt.with_for_update(of=Investment)

        investment = self.db.execute(stmt).scalar_one_or_none()
        if investment is None:
            raise InvestmentNotFound(f"Investment {investment_id} not found")
        return investment

    def _commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
