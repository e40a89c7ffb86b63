"""
Timestamp parsing and wall-clock window boundaries
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from dateutil import parser as date_parser


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a gateway timestamp; naive values are taken as UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(value)
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_now() -> datetime:
    return datetime.now().astimezone()


def window_starts(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Return (today_start, week_start) for the given instant.

    today_start is local midnight; week_start is seven days before it.
    """
    now = now or local_now()
    if now.tzinfo is None:
        now = now.astimezone()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return today_start, today_start - timedelta(days=7)
