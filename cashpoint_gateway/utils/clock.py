"""Time helpers - injectable so working-hours checks can be pinned in tests"""

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(moment: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to the given IANA zone; naive values are assumed local already"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(tz_name))
