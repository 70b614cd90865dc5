"""
FastAPI application entry point.

Operational surface only: health, scheduler status, setup status and metrics. Investment
routes live in the user-facing API service.
"""
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pumpfunds.api.routes import health, setup
from pumpfunds.utils.logging import configure_logging
from pumpfunds.utils.metrics import registry

configure_logging()

app = FastAPI(
    title="PumpFunds Scheduler API",
    description="Operational endpoints for the SIP scheduling and trade replication engine",
    version="1.0.0"
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(setup.router, prefix="/setup", tags=["Setup"])


@app.get("/metrics")
def metrics():
    """Prometheus exposition of engine metrics."""
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
