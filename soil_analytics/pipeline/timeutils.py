import time
from datetime import datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo

MINUTE_MS = 60 * 1000

# 9999-01-01T00:00Z, leaving room for any zone offset below datetime.max
MAX_TIMESTAMP_MS = 253370764800000


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def resolve_now(value: Optional[int]) -> int:
    return now_ms() if value is None else value


def to_datetime(ms: int, tz: str) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=ZoneInfo(tz))


def in_range(ms: int) -> bool:
    """Whether an epoch-ms instant can be placed on the calendar in any zone."""
    return 0 <= ms < MAX_TIMESTAMP_MS


def date_key(ms: int, tz: str) -> str:
    """Calendar date (YYYY-MM-DD) of an epoch-ms instant."""
    return to_datetime(ms, tz).date().isoformat()


def hour_of(ms: int, tz: str) -> int:
    return to_datetime(ms, tz).hour


def hour_key(ms: int, tz: str) -> str:
    return f"{hour_of(ms, tz):02d}"


def recent_dates(days: int, ms: int, tz: str) -> List[str]:
    """The last `days` calendar dates ending with today, newest first."""
    today = to_datetime(ms, tz).date()
    return [(today - timedelta(days=i)).isoformat() for i in range(days)]
