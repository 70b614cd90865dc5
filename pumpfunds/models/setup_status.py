"""Persisted setup status model."""
from sqlalchemy import Column, String, TIMESTAMP, Integer, Text
from sqlalchemy.sql import func
from pumpfunds.models.base import Base

class SetupStatus(Base):
    """
    Records completion of one-off setup steps (schema, seed data) so every
    process and restart sees the same state.
    """
    __tablename__ = 'setup_status'

    id = Column(Integer, primary_key=True)
    key = Column(String(64), unique=True, nullable=False)
    status = Column(String(16), nullable=False)  # in_progress, completed, failed
    detail = Column(Text)
    completed_at = Column(TIMESTAMP)
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
