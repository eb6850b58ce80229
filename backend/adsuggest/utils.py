"""
Shared utility functions.
"""

import logging
import secrets
import string
import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def safe_error_detail(exc: Exception, fallback: str = "An internal error occurred. Please try again later.") -> str:
    """
    Return a sanitized error message safe for client consumption.
    Logs the real exception detail server-side.
    """
    logger.error(f"Operation failed: {exc}", exc_info=True)
    return fallback


def utcnow() -> datetime:
    """
    Return the current UTC time as a naive datetime (no tzinfo).
    Naive datetimes are used because our DB columns are TIMESTAMP WITHOUT TIME ZONE.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_job_id() -> str:
    """job_<epoch ms>_<9 random base36 chars>, unique per submission."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


def resolve_date_range(
    period: str,
    min_date: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> tuple[str, str]:
    """
    Turn a reporting period (today/week/month/all) into (start, end) ISO dates.
    Explicit dates win over the period. The start never precedes `min_date`.
    """
    today = today or date.today()
    end = end_date or today.isoformat()

    if start_date:
        start = start_date
    elif period == "week":
        start = (today - timedelta(days=7)).isoformat()
    elif period == "month":
        month = today.month - 1 or 12
        year = today.year if today.month > 1 else today.year - 1
        day = min(today.day, 28)
        start = date(year, month, day).isoformat()
    elif period == "all":
        start = min_date
    else:
        start = today.isoformat()

    if start < min_date:
        start = min_date
    return start, end
