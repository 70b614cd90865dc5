"""
Liveness and scheduler health endpoints.
"""
from datetime import timedelta
from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.orm import Session
import redis
from pumpfunds.models.base import get_db
from pumpfunds.models.investments import Investment, InvestmentKind, InvestmentStatus
from pumpfunds.models.trade_replications import TradeReplication
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.logging import get_logger
from config.settings import get_settings, get_scheduler_config

logger = get_logger(__name__)

router = APIRouter()

@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Store connectivity. Everything the engine does needs it."""
    now = utcnow()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check could not reach database", error=str(e))
        return {"status": "unhealthy", "timestamp": now.isoformat(), "database": "disconnected", "error": str(e)}

    return {"status": "healthy", "timestamp": now.isoformat(), "database": "connected"}


@router.get("/scheduler/status")
def scheduler_status(db: Session = Depends(get_db)):
    """
    Is the SIP job keeping up?

    SIPs overdue by more than two job intervals mean the beat or the sip
    queue worker is not running. Broker reachability is reported alongside.
    """
    now = utcnow()
    interval = get_scheduler_config()['jobs']['process_due_sips']['every_minutes']
    stale_before = now - timedelta(minutes=2 * interval)

    overdue = db.execute(
        select(func.count(Investment.id)).where(
            Investment.kind == InvestmentKind.RECURRING.value,
            Investment.status == InvestmentStatus.ACTIVE.value,
            Investment.next_execution_at < stale_before,
        )
    ).scalar() or 0
    last_entry = db.execute(select(func.max(TradeReplication.executed_at))).scalar()

    settings = get_settings()
    try:
        broker = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        broker.ping()
        broker_status = "connected"
    except redis.RedisError as e:
        logger.warning("Celery broker unreachable", error=str(e))
        broker_status = "disconnected"

    return {
        "status": "healthy" if overdue == 0 and broker_status == "connected" else "degraded",
        "timestamp": now.isoformat(),
        "broker": broker_status,
        "overdue_sips": overdue,
        "last_ledger_entry_at": last_entry.isoformat() if last_entry else None,
    }
