"""
SIP schedule arithmetic.

Periods are fixed durations: a "monthly" SIP fires every 30 days rather than
on the same calendar day each month.
"""
from datetime import datetime, timedelta
from typing import Optional

from pumpfunds.utils.constants import SIP_PERIODS


def period_for(frequency: Optional[str]) -> timedelta:
    """
    Return the fixed period for a SIP frequency.

    Raises:
        ValueError: if the frequency is missing or unknown
    """
    key = getattr(frequency, 'value', frequency)
    try:
        return SIP_PERIODS[key]
    except KeyError:
        raise ValueError(f"Unknown SIP frequency: {frequency!r}")


def next_execution_after(
    previous: datetime,
    frequency: str,
    now: datetime,
    anchor_to_schedule: bool = True
) -> datetime:
    """
    Compute the next firing time for a SIP that is firing now.

    Args:
        previous: The scheduled time that just came due
        frequency: daily, weekly or monthly
        now: Current time
        anchor_to_schedule: Step from the previous scheduled time (keeps the
            cadence stable across late ticks) instead of from now

    Returns:
        A timestamp strictly after now. Periods missed while the process was
        down are skipped, never charged.
    """
    period = period_for(frequency)

    if not anchor_to_schedule or previous is None:
        return now + period

    candidate = previous + period
    if candidate <= now:
        missed = (now - candidate) // period + 1
        candidate = candidate + period * missed
    return candidate


def resume_execution_at(frequency: str, now: datetime) -> datetime:
    """First firing after a resume: one full period from now, no catch-up."""
    return now + period_for(frequency)
