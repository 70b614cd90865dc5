"""
Read access to schedules and the trade replication ledger for portfolio views.
"""
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from sqlalchemy import select, func, desc
from sqlalchemy.orm import Session
from pumpfunds.models.funds import Fund
from pumpfunds.models.investments import Investment, InvestmentKind, InvestmentStatus
from pumpfunds.models.trade_replications import TradeReplication
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT


class PortfolioReader:
    """Queries backing the portfolio, trades and upcoming-SIP views."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def upcoming_sips(self, user_id: int) -> List[Dict]:
        """Active SIPs with a future execution, soonest first."""
        rows = self.db.execute(
            select(Investment, Fund.name)
            .join(Fund, Investment.fund_id == Fund.id)
            .where(
                Investment.user_id == user_id,
                Investment.kind == InvestmentKind.RECURRING.value,
                Investment.status == InvestmentStatus.ACTIVE.value,
                Investment.next_execution_at.isnot(None),
                Investment.next_execution_at > self.clock(),
            )
            .order_by(Investment.next_execution_at.asc())
        ).all()

        return [
            {
                "investment_id": investment.id,
                "fund_id": investment.fund_id,
                "fund_name": fund_name,
                "amount": Decimal(str(investment.amount)),
                "frequency": investment.frequency,
                "next_execution_at": investment.next_execution_at,
            }
            for investment, fund_name in rows
        ]

    def trade_history(
        self,
        user_id: int,
        limit: int = DEFAULT_QUERY_LIMIT,
        investment_id: Optional[int] = None
    ) -> List[TradeReplication]:
        """Ledger rows for the user's investments, newest first."""
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        stmt = (
            select(TradeReplication)
            .join(Investment, TradeReplication.investment_id == Investment.id)
            .where(Investment.user_id == user_id)
        )
        if investment_id is not None:
            stmt = stmt.where(TradeReplication.investment_id == investment_id)

        stmt = stmt.order_by(desc(TradeReplication.executed_at), desc(TradeReplication.id)).limit(limit)
        return self.db.execute(stmt).scalars().all()

    def investment_summary(self, user_id: int) -> List[Dict]:
        """Per investment: ledger row count and total ledger amount."""
        rows = self.db.execute(
            select(
                Investment,
                Fund.name,
                func.count(TradeReplication.id),
                func.coalesce(func.sum(TradeReplication.amount), 0),
            )
            .join(Fund, Investment.fund_id == Fund.id)
            .outerjoin(TradeReplication, TradeReplication.investment_id == Investment.id)
            .where(Investment.user_id == user_id)
            .group_by(Investment.id, Fund.name)
            .order_by(desc(Investment.created_at), desc(Investment.id))
        ).all()

        return [
            {
                "investment_id": investment.id,
                "fund_name": fund_name,
                "kind": investment.kind,
                "status": investment.status,
                "amount": Decimal(str(investment.amount)),
                "transaction_count": int(count),
                "total_replicated": Decimal(str(total)),
            }
            for investment, fund_name, count, total in rows
        ]
