"""
Celery background tasks.

Each task builds its engine component with the shared session factory and
returns a JSON-serialisable summary. Per-item failures are handled inside the
components; anything escaping here failed the whole tick and is re-raised so
Celery records it, and the next tick starts fresh.
"""
from celery import Task
from pumpfunds.scheduler.celery_app import app, jobs
from pumpfunds.models.base import SessionLocal
from pumpfunds.core.sip_executor import SipExecutor
from pumpfunds.core.wallet_monitor import TraderWalletMonitor
from pumpfunds.core.retention_sweeper import RetentionSweeper
from pumpfunds.detection.factory import get_detector
from pumpfunds.utils.logging import get_logger
from pumpfunds.utils.metrics import time_job
from config.settings import get_scheduler_config

logger = get_logger(__name__)


class EngineTask(Task):
    """Base task exposing the session factory the engine components share."""
    session_factory = SessionLocal


@app.task(
    base=EngineTask,
    bind=True,
    soft_time_limit=jobs['process_due_sips']['time_limit_seconds'],
)
def process_due_sips(self):
    """
    Every 5 minutes: execute SIP investments whose next execution has passed.
    """
    logger.info("Processing due SIP investments")
    sip_config = get_scheduler_config()['sip']

    try:
        with time_job('process_due_sips'):
            executor = SipExecutor(
                self.session_factory,
                anchor_to_schedule=sip_config['anchor_to_schedule'],
                batch_limit=sip_config.get('batch_limit'),
            )
            result = executor.run_cycle()
        return result.to_dict()

    except Exception as e:
        logger.error(f"SIP processing failed: {e}")
        raise


@app.task(
    base=EngineTask,
    bind=True,
    soft_time_limit=jobs['monitor_trader_wallets']['time_limit_seconds'],
)
def monitor_trader_wallets(self):
    """
    Every 2 minutes: replicate new trader wallet activity into active funds.
    """
    try:
        with time_job('monitor_trader_wallets'):
            monitor = TraderWalletMonitor(self.session_factory, get_detector())
            result = monitor.run_cycle()
        return result.to_dict()

    except Exception as e:
        logger.error(f"Trader wallet monitoring failed: {e}")
        raise


@app.task(
    base=EngineTask,
    bind=True,
    soft_time_limit=jobs['sweep_trade_replications']['time_limit_seconds'],
)
def sweep_trade_replications(self):
    """
    Daily at 2 AM UTC: delete trade replications past the retention horizon.
    """
    retention_days = get_scheduler_config()['retention']['trade_replication_days']

    try:
        with time_job('sweep_trade_replications'):
            sweeper = RetentionSweeper(self.session_factory, retention_days=retention_days)
            deleted = sweeper.sweep()
        return {"deleted": deleted, "retention_days": retention_days}

    except Exception as e:
        logger.error(f"Trade replication cleanup failed: {e}")
        raise
