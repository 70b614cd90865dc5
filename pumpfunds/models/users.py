"""User database model."""
from sqlalchemy import Column, String, TIMESTAMP, Integer
from sqlalchemy.sql import func
from pumpfunds.models.base import Base

class User(Base):
    """
    Investor account. Key material is managed by the wallet service and is
    not stored here.
    """
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, index=True)
    wallet_pubkey = Column(String(64), unique=True, nullable=False, index=True)

    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
