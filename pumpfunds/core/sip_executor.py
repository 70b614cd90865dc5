"""
SIP execution engine.

Advances each due SIP's schedule and appends its ledger entry in a single
transaction. Every investment is claimed with a row lock (PostgreSQL) and a
compare-and-swap on its previous next_execution_at, so overlapping runs
advance a given schedule value at most once.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker
from pumpfunds.core.schedule import next_execution_after
from pumpfunds.core.sip_selector import DueSip, DueSipSelector
from pumpfunds.models.funds import Fund, FundStatus
from pumpfunds.models.investments import Investment, InvestmentKind, InvestmentStatus
from pumpfunds.models.trade_replications import (
    TradeReplication, ReplicationKind, ReplicationStatus, TradeDirection
)
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.logging import get_logger
from pumpfunds.utils.metrics import record_sip_execution, record_trade_replication
from pumpfunds.utils.signatures import generate_mock_signature

logger = get_logger(__name__)

OUTCOME_EXECUTED = 'executed'
OUTCOME_SKIPPED = 'skipped'
OUTCOME_INVALID = 'invalid'
OUTCOME_FAILED = 'failed'


class StaleScheduleError(RuntimeError):
    """The investment's schedule changed between claim and update."""

    def __init__(self, investment_id: int):
        super().__init__(f"Investment {investment_id} schedule changed during execution")
        self.investment_id = investment_id


@dataclass
class SipOutcome:
    """Result of processing one due SIP."""
    investment_id: int
    outcome: str
    next_execution_at: Optional[datetime] = None
    tx_signature: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SipCycleResult:
    """Summary of one scheduler cycle."""
    due: int = 0
    executed: int = 0
    skipped: int = 0
    invalid: int = 0
    failed: int = 0
    outcomes: List[SipOutcome] = field(default_factory=list)

    def add(self, outcome: SipOutcome):
        self.outcomes.append(outcome)
        if outcome.outcome == OUTCOME_EXECUTED:
            self.executed += 1
        elif outcome.outcome == OUTCOME_SKIPPED:
            self.skipped += 1
        elif outcome.outcome == OUTCOME_INVALID:
            self.invalid += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict:
        return {
            "due": self.due,
            "executed": self.executed,
            "skipped": self.skipped,
            "invalid": self.invalid,
            "failed": self.failed,
        }


class SipExecutor:
    """
    Processes due SIP investments.

    Each investment is handled in its own short-lived session so a failure
    rolls back only that investment.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = utcnow,
        anchor_to_schedule: bool = True,
        batch_limit: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.anchor_to_schedule = anchor_to_schedule
        self.batch_limit = batch_limit

    def run_cycle(self, now: Optional[datetime] = None) -> SipCycleResult:
        """
        Select every due SIP and execute each one independently.

        Selection errors propagate (the whole tick failed and the next tick
        retries); per-investment errors are logged and counted. Celery's soft
        time limit stops the cycle between investments.
        """
        now = now or self.clock()
        result = SipCycleResult()

        db = self.session_factory()
        try:
            due = DueSipSelector(db).fetch_due(now, limit=self.batch_limit, lock=False)
        finally:
            db.close()

        result.due = len(due)

        for item in due:
            try:
                outcome = self.execute(item, now=now)
            except SoftTimeLimitExceeded:
                logger.warning(
                    "SIP cycle hit its time limit",
                    investment_id=item.investment_id,
                    processed=len(result.outcomes),
                    remaining=result.due - len(result.outcomes)
                )
                raise
            except Exception as e:
                logger.error(
                    "SIP execution failed",
                    investment_id=item.investment_id,
                    error=str(e)
                )
                outcome = SipOutcome(item.investment_id, OUTCOME_FAILED, error=str(e))
            record_sip_execution(outcome.outcome)
            result.add(outcome)

        logger.info("SIP processing completed", **result.to_dict())
        return result

    def execute(self, due: DueSip, now: Optional[datetime] = None) -> SipOutcome:
        """
        Advance one SIP and record its ledger entry atomically.

        Args:
            due: Snapshot returned by the selector
            now: Execution time (defaults to the clock)

        Returns:
            SipOutcome; skipped when the investment is no longer due in the
            state it was selected in (paused, cancelled, fund deactivated, or
            already advanced by a concurrent run)
        """
        now = now or self.clock()

        try:
            next_execution = next_execution_after(
                due.next_execution_at, due.frequency, now, self.anchor_to_schedule
            )
        except ValueError as e:
            logger.error(
                "Recurring investment has invalid frequency",
                investment_id=due.investment_id,
                frequency=due.frequency
            )
            return SipOutcome(due.investment_id, OUTCOME_INVALID, error=str(e))

        db = self.session_factory()
        try:
            if not self._claim(db, due):
                db.rollback()
                logger.info("SIP no longer due, skipping", investment_id=due.investment_id)
                return SipOutcome(due.investment_id, OUTCOME_SKIPPED)

            tx_signature = generate_mock_signature()
            db.add(TradeReplication(
                investment_id=due.investment_id,
                fund_id=due.fund_id,
                amount=due.amount,
                kind=ReplicationKind.SIP_EXECUTION.value,
                status=ReplicationStatus.COMPLETED.value,
                trade_type=TradeDirection.BUY.value,
                tx_signature=tx_signature,
                executed_at=now,
            ))
            self._advance(db, due, next_execution)
            db.commit()
        except StaleScheduleError:
            db.rollback()
            logger.info("SIP advanced concurrently, skipping", investment_id=due.investment_id)
            return SipOutcome(due.investment_id, OUTCOME_SKIPPED)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        record_trade_replication(ReplicationKind.SIP_EXECUTION.value)
        logger.info(
            "SIP processed",
            investment_id=due.investment_id,
            user_id=due.user_id,
            amount=str(due.amount),
            next_execution_at=next_execution.isoformat()
        )
        return SipOutcome(
            due.investment_id,
            OUTCOME_EXECUTED,
            next_execution_at=next_execution,
            tx_signature=tx_signature
        )

    def _still_due_clause(self, due: DueSip):
        active_funds = select(Fund.id).where(Fund.status == FundStatus.ACTIVE.value)
        return (
            Investment.id == due.investment_id,
            Investment.kind == InvestmentKind.RECURRING.value,
            Investment.status == InvestmentStatus.ACTIVE.value,
            Investment.next_execution_at == due.next_execution_at,
            Investment.fund_id.in_(active_funds),
        )

    def _claim(self, db: Session, due: DueSip) -> bool:
        """Lock the investment row if it is still due exactly as selected."""
        stmt = select(Investment.id).where(*self._still_due_clause(due))
        if db.get_bind().dialect.name == 'postgresql':
            stmt = stmt.with_for_update(skip_locked=True, of=Investment)
        return db.execute(stmt).first() is not None

    def _advance(self, db: Session, due: DueSip, next_execution: datetime):
        """Compare-and-swap the schedule; raises if another run got there first."""
        result = db.execute(
            update(Investment)
            .where(*self._still_due_clause(due))
            .values(next_execution_at=next_execution)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleScheduleError(due.investment_id)

