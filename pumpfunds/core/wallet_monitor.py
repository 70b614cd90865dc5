"""
Trader wallet monitoring.

Watches each active fund's trader wallets and replicates detected trades
across the fund's active investments, proportionally to each investment.

A fund is checked in three steps: read its wallets and cursors, ask the
detector (network calls, no connection held), then record cursors and
replications in one transaction that first re-checks the fund.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Set
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from pumpfunds.detection.base_detector import BaseDetector, DetectedActivity, DetectionResult
from pumpfunds.models.funds import Fund, FundStatus
from pumpfunds.models.investments import Investment, InvestmentStatus
from pumpfunds.models.trade_replications import TradeReplication, ReplicationKind, ReplicationStatus
from pumpfunds.models.wallet_cursors import WalletCursor
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.constants import AMOUNT_QUANTUM
from pumpfunds.utils.logging import get_logger
from pumpfunds.utils.metrics import record_fund_monitored, record_trade_replication
from pumpfunds.utils.signatures import generate_mock_signature

logger = get_logger(__name__)


@dataclass
class MonitorCycleResult:
    funds_checked: int = 0
    funds_with_activity: int = 0
    funds_failed: int = 0
    replications_created: int = 0

    def to_dict(self) -> dict:
        return {
            "funds_checked": self.funds_checked,
            "funds_with_activity": self.funds_with_activity,
            "funds_failed": self.funds_failed,
            "replications_created": self.replications_created,
        }


@dataclass
class FundSnapshot:
    """A fund's wallets and persisted cursors, read before detection."""
    fund_id: int
    wallets: List[str]
    cursors: Dict[str, Optional[str]] = field(default_factory=dict)
    known_wallets: Set[str] = field(default_factory=set)


class StaleCursorError(RuntimeError):
    """Another monitor run moved a wallet cursor while this one was detecting."""


def replicated_amount(investment_amount: Decimal, fraction: Decimal) -> Decimal:
    """Investor's share of a trader trade, never negative nor above the investment."""
    fraction = min(max(Decimal(fraction), Decimal(0)), Decimal(1))
    return (Decimal(investment_amount) * fraction).quantize(AMOUNT_QUANTUM)


class TraderWalletMonitor:
    """
    Replicates trader wallet activity into investor ledgers.

    Cursor updates and replicated rows for a fund commit together, and one
    fund's failure leaves the others untouched.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        detector: BaseDetector,
        clock: Callable[[], datetime] = utcnow
    ):
        self.session_factory = session_factory
        self.detector = detector
        self.clock = clock

    def eligible_fund_ids(self) -> List[int]:
        """Active funds with at least one configured trader wallet."""
        db = self.session_factory()
        try:
            funds = db.execute(
                select(Fund).where(Fund.status == FundStatus.ACTIVE.value).order_by(Fund.id)
            ).scalars().all()
            return [fund.id for fund in funds if fund.wallets]
        finally:
            db.close()

    def run_cycle(self) -> MonitorCycleResult:
        logger.info("Monitoring trader wallets for new transactions", detector=self.detector.name)
        result = MonitorCycleResult()

        fund_ids = self.eligible_fund_ids()
        logger.info(f"Monitoring {len(fund_ids)} active fund(s)")

        for fund_id in fund_ids:
            result.funds_checked += 1
            try:
                created = self.monitor_fund(fund_id)
            except SoftTimeLimitExceeded:
                logger.warning(
                    "Trader wallet monitoring hit its time limit",
                    fund_id=fund_id,
                    funds_remaining=len(fund_ids) - result.funds_checked
                )
                raise
            except Exception as e:
                result.funds_failed += 1
                record_fund_monitored('failed')
                logger.error("Error monitoring fund", fund_id=fund_id, error=str(e))
                continue

            if created:
                result.funds_with_activity += 1
                result.replications_created += created
                record_fund_monitored('activity')
            else:
                record_fund_monitored('idle')

        logger.info("Trader wallet monitoring completed", **result.to_dict())
        return result

    def monitor_fund(self, fund_id: int) -> int:
        """
        Check one fund and replicate any new trades.

        Returns:
            Number of ledger rows appended (0 when the fund is no longer
            eligible, nothing was detected, or a concurrent run already
            recorded this check)
        """
        snapshot = self._snapshot(fund_id)
        if snapshot is None:
            logger.info("Fund no longer eligible for monitoring", fund_id=fund_id)
            return 0

        detection = self.detector.detect(fund_id, snapshot.wallets, dict(snapshot.cursors))

        db = self.session_factory()
        try:
            fund = db.get(Fund, fund_id)
            if fund is None or fund.status != FundStatus.ACTIVE.value:
                db.rollback()
                logger.info("Fund deactivated during check, discarding activity", fund_id=fund_id)
                return 0

            self._store_cursors(db, snapshot, detection)
            created = 0
            if detection.activities:
                investments = self._active_investments(db, fund_id)
                created = self._replicate(db, fund_id, detection.activities, investments)

            db.commit()
        except StaleCursorError as e:
            db.rollback()
            logger.info("Fund checked concurrently, discarding this check", fund_id=fund_id, reason=str(e))
            return 0
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if created:
            record_trade_replication(ReplicationKind.TRADE_REPLICATION.value, created)
            logger.info(
                "Replicated trader activity",
                fund_id=fund_id,
                trades=len(detection.activities),
                rows=created
            )
        return created

    def _snapshot(self, fund_id: int) -> Optional[FundSnapshot]:
        db = self.session_factory()
        try:
            fund = db.get(Fund, fund_id)
            if fund is None or fund.status != FundStatus.ACTIVE.value or not fund.wallets:
                return None

            snapshot = FundSnapshot(fund_id=fund_id, wallets=fund.wallets)
            rows = db.execute(
                select(WalletCursor.wallet_address, WalletCursor.last_signature)
                .where(WalletCursor.fund_id == fund_id)
            ).all()
            for wallet, last_signature in rows:
                snapshot.cursors[wallet] = last_signature
                snapshot.known_wallets.add(wallet)
            return snapshot
        finally:
            db.close()

    def _store_cursors(self, db: Session, snapshot: FundSnapshot, detection: DetectionResult):
        """Compare-and-swap each cursor against the value detection started from."""
        if detection.cursors is None:
            return

        now = self.clock()
        for wallet, last_signature in detection.cursors.items():
            if wallet not in snapshot.known_wallets:
                db.add(WalletCursor(
                    fund_id=snapshot.fund_id,
                    wallet_address=wallet,
                    last_signature=last_signature,
                    last_checked_at=now,
                ))
                continue

            result = db.execute(
                update(WalletCursor)
                .where(
                    WalletCursor.fund_id == snapshot.fund_id,
                    WalletCursor.wallet_address == wallet,
                    WalletCursor.last_signature == snapshot.cursors.get(wallet),
                )
                .values(last_signature=last_signature, last_checked_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise StaleCursorError(f"Cursor for {wallet} moved during the check")

        try:
            db.flush()
        except IntegrityError as e:
            raise StaleCursorError(f"Cursor for fund {snapshot.fund_id} inserted concurrently") from e

    def _active_investments(self, db: Session, fund_id: int) -> List[Investment]:
        return db.execute(
            select(Investment).where(
                Investment.fund_id == fund_id,
                Investment.status == InvestmentStatus.ACTIVE.value
            ).order_by(Investment.id)
        ).scalars().all()

    def _replicate(
        self,
        db: Session,
        fund_id: int,
        activities: List[DetectedActivity],
        investments: List[Investment]
    ) -> int:
        now = self.clock()
        created = 0
        for activity in activities:
            for investment in investments:
                db.add(TradeReplication(
                    investment_id=investment.id,
                    fund_id=fund_id,
                    amount=replicated_amount(investment.amount, activity.fraction),
                    kind=ReplicationKind.TRADE_REPLICATION.value,
                    status=ReplicationStatus.COMPLETED.value,
                    trade_type=activity.direction,
                    tx_signature=generate_mock_signature(),
                    source_signature=activity.source_signature,
                    executed_at=now,
                ))
                created += 1
        return created
