"""
Celery application configuration.

Three independent beat entries drive the engine. Each job is routed to its
own queue so a long SIP batch never delays wallet monitoring or retention.
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import beat_init, worker_init
from sqlalchemy import text
from config.settings import get_settings, get_scheduler_config
from pumpfunds.utils.logging import configure_logging, get_logger

settings = get_settings()
jobs = get_scheduler_config()['jobs']

configure_logging()
logger = get_logger(__name__)

# Create Celery app
app = Celery(
    'pumpfunds',
    broker=f'redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/0',
    backend=f'redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/0',
    include=['pumpfunds.scheduler.tasks']
)

# Celery configuration
app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes max per task
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    worker_hijack_root_logger=False,
    task_routes={
        'pumpfunds.scheduler.tasks.process_due_sips': {'queue': 'sip'},
        'pumpfunds.scheduler.tasks.monitor_trader_wallets': {'queue': 'monitor'},
        'pumpfunds.scheduler.tasks.sweep_trade_replications': {'queue': 'maintenance'},
    },
)

# Schedule configuration. Missed ticks while the process is down are not replayed.
app.conf.beat_schedule = {
    'process-due-sips': {
        'task': 'pumpfunds.scheduler.tasks.process_due_sips',
        'schedule': crontab(minute=f"*/{jobs['process_due_sips']['every_minutes']}"),
        'options': {'expires': jobs['process_due_sips']['every_minutes'] * 60},
    },
    'monitor-trader-wallets': {
        'task': 'pumpfunds.scheduler.tasks.monitor_trader_wallets',
        'schedule': crontab(minute=f"*/{jobs['monitor_trader_wallets']['every_minutes']}"),
        'options': {'expires': jobs['monitor_trader_wallets']['every_minutes'] * 60},
    },
    'sweep-trade-replications-daily': {
        'task': 'pumpfunds.scheduler.tasks.sweep_trade_replications',
        'schedule': crontab(
            hour=jobs['sweep_trade_replications']['hour'],
            minute=jobs['sweep_trade_replications']['minute']
        ),  # 2 AM UTC daily
    },
}


def verify_database_connection():
    """
    Fail fast when the store is unreachable at boot; nothing can run without it.
    """
    from pumpfunds.models.base import engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.critical("Cannot reach database at startup", error=str(e))
        raise SystemExit(1)
    logger.info("Database connectivity verified")


@worker_init.connect
def on_worker_init(**kwargs):
    verify_database_connection()


@beat_init.connect
def on_beat_init(**kwargs):
    verify_database_connection()


if __name__ == '__main__':
    app.start()
