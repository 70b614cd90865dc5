"""Trade replication ledger model."""
from enum import Enum
from sqlalchemy import Column, String, Numeric, TIMESTAMP, Integer, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from pumpfunds.models.base import Base
from pumpfunds.models import funds, investments  # noqa: F401 (foreign key targets)


class ReplicationKind(str, Enum):
    SIP_EXECUTION = "sip_execution"
    TRADE_REPLICATION = "trade_replication"
    INVESTMENT = "investment"
    TEST = "test"


class ReplicationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TradeDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TradeReplication(Base):
    """
    Append-only ledger of replicated trades.

    Rows are never updated; the retention sweeper is the only deleter.
    """
    __tablename__ = 'trade_replications'
    __table_args__ = (
        CheckConstraint(
            "kind IN ('sip_execution', 'trade_replication', 'investment', 'test')",
            name='ck_trade_replications_kind'
        ),
        CheckConstraint("status IN ('pending', 'completed', 'failed')", name='ck_trade_replications_status'),
        CheckConstraint("trade_type IN ('buy', 'sell')", name='ck_trade_replications_trade_type'),
    )

    # Primary key
    id = Column(Integer, primary_key=True)
    investment_id = Column(Integer, ForeignKey('investments.id', ondelete='CASCADE'), nullable=False, index=True)
    fund_id = Column(Integer, ForeignKey('funds.id', ondelete='CASCADE'), index=True)

    # Trade details
    amount = Column(Numeric, nullable=False)
    kind = Column(String(32), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ReplicationStatus.PENDING.value)
    trade_type = Column(String(4), nullable=False, default=TradeDirection.BUY.value)
    token_address = Column(String(64))

    # Replicated transaction id and the trader transaction it mirrors
    tx_signature = Column(String(128), unique=True, nullable=False)
    source_signature = Column(String(128))

    executed_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), index=True)

    def __repr__(self):
        return (
            f"<TradeReplication(id={self.id}, investment_id={self.investment_id}, "
            f"kind='{self.kind}', amount={self.amount})>"
        )
