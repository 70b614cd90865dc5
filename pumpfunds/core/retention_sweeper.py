"""Trade replication ledger retention."""
from datetime import datetime, timedelta
from typing import Callable
from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker
from pumpfunds.models.trade_replications import TradeReplication
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.constants import DEFAULT_RETENTION_DAYS
from pumpfunds.utils.logging import get_logger
from pumpfunds.utils.metrics import record_retention_deleted

logger = get_logger(__name__)

class RetentionSweeper:
    """
    Deletes ledger rows older than the retention horizon in one statement.
    Running it again immediately deletes nothing new.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = utcnow
    ):
        if retention_days <= 0:
            raise ValueError(f"retention_days must be positive, got {retention_days}")
        self.session_factory = session_factory
        self.retention_days = retention_days
        self.clock = clock

    def cutoff(self) -> datetime:
        return self.clock() - timedelta(days=self.retention_days)

    def sweep(self) -> int:
        """
        Delete expired trade replications.

        Returns:
            Number of rows removed
        """
        cutoff = self.cutoff()
        logger.info("Cleaning up old trade replications", cutoff=cutoff.isoformat())

        db = self.session_factory()
        try:
            result = db.execute(
                delete(TradeReplication)
                .where(TradeReplication.executed_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        deleted = result.rowcount or 0
        record_retention_deleted(deleted)
        logger.info(f"Cleaned up {deleted} old trade replication(s)", retention_days=self.retention_days)
        return deleted
