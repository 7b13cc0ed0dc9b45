"""Datetime helpers. Storage is naive UTC; user-facing maths uses pytz zones."""
import logging
from datetime import datetime

import pytz

logger = logging.getLogger(__name__)


def to_utc_naive(moment: datetime) -> datetime:
    """Normalise an aware or naive datetime to naive UTC (naive input is assumed UTC)."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(pytz.utc).replace(tzinfo=None)


def get_timezone(name: str):
    try:
        return pytz.timezone(name or "UTC")
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', falling back to UTC")
        return pytz.utc


def to_local(moment: datetime, tz_name: str) -> datetime:
    """Convert a naive-UTC datetime into the given IANA zone."""
    return pytz.utc.localize(to_utc_naive(moment)).astimezone(get_timezone(tz_name))
