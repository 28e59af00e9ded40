from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.core.config import get_settings


@lru_cache
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def school_zone() -> ZoneInfo:
    return _zone(get_settings().school_timezone)


def to_school_local(value: datetime) -> datetime:
    """Return the school-local wall-clock time for ``value`` without tzinfo.

    Naive values are taken to be school-local already.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(school_zone()).replace(tzinfo=None)


def school_now() -> datetime:
    return datetime.now(school_zone()).replace(tzinfo=None)
