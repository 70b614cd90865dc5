"""Prometheus metrics exporters."""
from prometheus_client import Counter, Histogram, CollectorRegistry

# Create registry
registry = CollectorRegistry()

# ========== SIP METRICS ==========
sip_executions = Counter(
    'sip_executions_total',
    'SIP executions by outcome',
    ['outcome'],
    registry=registry
)

# ========== LEDGER METRICS ==========
trade_replications_created = Counter(
    'trade_replications_created_total',
    'Trade replication ledger rows appended',
    ['kind'],
    registry=registry
)

trade_replications_deleted = Counter(
    'trade_replications_deleted_total',
    'Trade replication rows removed by retention',
    registry=registry
)

# ========== MONITOR METRICS ==========
fund_monitor_results = Counter(
    'fund_monitor_results_total',
    'Per-fund trader wallet monitor outcomes',
    ['outcome'],
    registry=registry
)

# ========== JOB METRICS ==========
job_duration = Histogram(
    'scheduler_job_seconds',
    'Scheduler job duration in seconds',
    ['job'],
    registry=registry
)

# ========== HELPER FUNCTIONS ==========
def record_sip_execution(outcome: str):
    """Record a SIP execution outcome (executed, skipped, failed, invalid)."""
    sip_executions.labels(outcome=outcome).inc()

def record_trade_replication(kind: str, count: int = 1):
    """Record appended ledger rows."""
    trade_replications_created.labels(kind=kind).inc(count)

def record_retention_deleted(count: int):
    """Record rows deleted by the retention sweeper."""
    trade_replications_deleted.inc(count)

def record_fund_monitored(outcome: str):
    """Record a per-fund monitor outcome (activity, idle, failed)."""
    fund_monitor_results.labels(outcome=outcome).inc()

def time_job(job: str):
    """Context manager timing one scheduler job run."""
    return job_duration.labels(job=job).time()
