import logging
import os
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

CAFE_TIMEZONE = (os.getenv("CATFE_TIMEZONE", "America/Los_Angeles") or "").strip()
try:
    _CAFE_TZ = ZoneInfo(CAFE_TIMEZONE) if CAFE_TIMEZONE else None
except (ZoneInfoNotFoundError, ValueError):
    logger.warning("Unknown CATFE_TIMEZONE %r, falling back to host local time", CAFE_TIMEZONE)
    _CAFE_TZ = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    if _CAFE_TZ is None:
        return datetime.now()
    # Naive wall clock so it compares directly with the naive DB values.
    return datetime.now(_CAFE_TZ).replace(tzinfo=None)


def to_cafe_naive(value: datetime | None) -> datetime | None:
    """Express an offset-carrying datetime as naive café wall-clock time.

    Naive values are taken to already be café-local and pass through.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(_CAFE_TZ).replace(tzinfo=None)
