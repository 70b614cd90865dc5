"""
Due-SIP selection.

Finds recurring investments whose scheduled execution time has passed.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from pumpfunds.models.funds import Fund, FundStatus
from pumpfunds.models.investments import Investment, InvestmentKind, InvestmentStatus
from pumpfunds.models.users import User
from pumpfunds.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DueSip:
    """Snapshot of a due SIP taken at selection time."""
    investment_id: int
    user_id: int
    fund_id: int
    fund_name: str
    owner_wallet: Optional[str]
    amount: Decimal
    frequency: Optional[str]
    next_execution_at: datetime


class DueSipSelector:
    """
    Selects active recurring investments in active funds that are due.

    Side-effect free apart from the row locks taken on PostgreSQL, which
    are released when the caller's transaction ends.
    """

    def __init__(self, db: Session):
        self.db = db

    def fetch_due(self, now: datetime, limit: Optional[int] = None, lock: bool = True) -> List[DueSip]:
        """
        Return snapshots of every due SIP.

        Args:
            now: Cut-off; rows with next_execution_at <= now are due
            limit: Optional cap on rows returned
            lock: Take FOR UPDATE SKIP LOCKED row locks where supported, so
                concurrent selectors do not hand out the same rows

        Returns:
            List of DueSip snapshots (unordered)
        """
        stmt = (
            select(
                Investment.id,
                Investment.user_id,
                Investment.fund_id,
                Fund.name,
                User.wallet_pubkey,
                Investment.amount,
                Investment.frequency,
                Investment.next_execution_at,
            )
            .join(Fund, Investment.fund_id == Fund.id)
            .join(User, Investment.user_id == User.id)
            .where(
                Investment.kind == InvestmentKind.RECURRING.value,
                Investment.status == InvestmentStatus.ACTIVE.value,
                Investment.next_execution_at.isnot(None),
                Investment.next_execution_at <= now,
                Fund.status == FundStatus.ACTIVE.value,
            )
        )
        if limit:
            stmt = stmt.limit(limit)
        if lock and self._supports_skip_locked():
            stmt = stmt.with_for_update(skip_locked=True, of=Investment)

        rows = self.db.execute(stmt).all()

        due = [
            DueSip(
                investment_id=row[0],
                user_id=row[1],
                fund_id=row[2],
                fund_name=row[3],
                owner_wallet=row[4],
                amount=Decimal(str(row[5])),
                frequency=row[6],
                next_execution_at=row[7],
            )
            for row in rows
        ]

        if not due:
            logger.info("No SIP investments due for execution", now=now.isoformat())
        else:
            logger.info(f"Found {len(due)} SIP investment(s) due for execution", now=now.isoformat())

        return due

    def _supports_skip_locked(self) -> bool:
        bind = self.db.get_bind()
        return bind.dialect.name == 'postgresql'
