"""Calendar helpers for monthly usage counters

Timestamps are stored as naive UTC; months are cut in a fixed local zone.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def month_start_utc(now: datetime, tz_name: str) -> datetime:
    """
    Start of the calendar month containing now, in tz_name, as naive UTC

    Args:
        now: Naive UTC reference time
        tz_name: IANA zone the month boundary is defined in (e.g. Asia/Tokyo)

    Returns:
        Naive UTC datetime of local 00:00 on the 1st of that month
    """
    tz = ZoneInfo(tz_name)
    local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)
    local_start = local_now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)
