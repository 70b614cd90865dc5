"""Imports every model so Base.metadata knows all tables."""
from pumpfunds.models.base import Base
from pumpfunds.models.users import User
from pumpfunds.models.funds import Fund
from pumpfunds.models.investments import Investment
from pumpfunds.models.trade_replications import TradeReplication
from pumpfunds.models.wallet_cursors import WalletCursor
from pumpfunds.models.setup_status import SetupStatus

__all__ = ['Base', 'User', 'Fund', 'Investment', 'TradeReplication', 'WalletCursor', 'SetupStatus']
