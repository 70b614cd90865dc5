"""
Setup status endpoint, backed by the persisted setup record.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session
from pumpfunds.models.base import get_db
from pumpfunds.models.funds import Fund
from pumpfunds.models.setup_status import SetupStatus
from pumpfunds.utils.constants import DATABASE_SETUP_KEY

router = APIRouter()

REQUIRED_TABLES = ['users', 'funds', 'investments', 'trade_replications', 'wallet_cursors', 'setup_status']

@router.get("/status")
def setup_status(db: Session = Depends(get_db)):
    """
    Report whether schema and seed data are in place.
    """
    table_names = inspect(db.get_bind()).get_table_names()
    tables_exist = all(table in table_names for table in REQUIRED_TABLES)

    funds_count = 0
    record = None
    if tables_exist:
        funds_count = db.execute(select(func.count(Fund.id))).scalar() or 0
        record = db.execute(
            select(SetupStatus).where(SetupStatus.key == DATABASE_SETUP_KEY)
        ).scalar_one_or_none()

    return {
        "tables_exist": tables_exist,
        "tables_found": sorted(table_names),
        "funds_available": funds_count,
        "setup_status": record.status if record else None,
        "setup_completed_at": record.completed_at.isoformat() if record and record.completed_at else None,
        "needs_setup": not tables_exist or funds_count == 0,
    }
