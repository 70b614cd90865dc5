"""Per-fund trader wallet cursor model."""
from sqlalchemy import Column, String, TIMESTAMP, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from pumpfunds.models.base import Base
from pumpfunds.models import funds  # noqa: F401 (foreign key target)

class WalletCursor(Base):
    """
    Last transaction signature seen for a trader wallet, per fund.
    Used by on-chain detection to diff new activity since the previous check.
    """
    __tablename__ = 'wallet_cursors'
    __table_args__ = (
        UniqueConstraint('fund_id', 'wallet_address', name='uq_wallet_cursors_fund_wallet'),
    )

    id = Column(Integer, primary_key=True)
    fund_id = Column(Integer, ForeignKey('funds.id', ondelete='CASCADE'), nullable=False, index=True)
    wallet_address = Column(String(64), nullable=False)
    last_signature = Column(String(128))
    last_checked_at = Column(TIMESTAMP)

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
