"""Wall-clock source. All timestamps are naive UTC, matching the TIMESTAMP columns."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
