"""Fund database model."""
from enum import Enum
from decimal import Decimal
from sqlalchemy import Column, String, Numeric, TIMESTAMP, Integer, Text, JSON, CheckConstraint
from sqlalchemy.sql import func
from pumpfunds.models.base import Base


class FundStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    INACTIVE = "inactive"


class Fund(Base):
    """
    Curated fund mirroring the trading activity of one or more trader wallets.
    """
    __tablename__ = 'funds'
    __table_args__ = (
        CheckConstraint("status IN ('active', 'paused', 'inactive')", name='ck_funds_status'),
    )

    # Primary key
    id = Column(Integer, primary_key=True)

    # Display metadata
    name = Column(String(255), nullable=False)
    description = Column(Text)
    logo_url = Column(String(512))
    strategy = Column(String(64), default='DeFi Focus')

    # Trader wallet addresses this fund mirrors
    trader_wallets = Column(JSON, nullable=False, default=list)

    # Limits and fees
    min_investment = Column(Numeric, nullable=False, default=Decimal('100'))
    max_investment = Column(Numeric)
    management_fee = Column(Numeric, default=Decimal('2.0'))
    performance_fee = Column(Numeric, default=Decimal('20.0'))

    # Lifecycle
    status = Column(String(16), nullable=False, default=FundStatus.ACTIVE.value, index=True)

    # Audit
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())

    @property
    def wallets(self):
        """Configured trader wallets, blanks and duplicates removed."""
        seen = []
        for wallet in self.trader_wallets or []:
            wallet = (wallet or "").strip()
            if wallet and wallet not in seen:
                seen.append(wallet)
        return seen

    def __repr__(self):
        return f"<Fund(id={self.id}, name='{self.name}', status='{self.status}')>"
