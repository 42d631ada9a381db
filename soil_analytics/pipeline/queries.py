import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from soil_analytics.errors import InvalidQuery, StoreReadError
from soil_analytics.models import DailyStats, EventRecord
from soil_analytics.pipeline.reports import format_events, format_realtime, format_summary
from soil_analytics.pipeline.rollup import merge, stats_key
from soil_analytics.pipeline.timeutils import (
    MINUTE_MS,
    date_key,
    hour_of,
    recent_dates,
    resolve_now,
)
from soil_analytics.store import ObjectStore

logger = logging.getLogger("SoilAnalytics.Queries")

RANGE_DAYS = {"1d": 1, "7d": 7, "30d": 30}
DEFAULT_RANGE = "7d"
FALLBACK_DAYS = 30

REALTIME_WINDOW_MS = 30 * MINUTE_MS
ACTIVE_WINDOW_MS = 5 * MINUTE_MS
REALTIME_KEYS_PER_BUCKET = 50


def range_days(range_label: str) -> int:
    """Day count for a summary range; unrecognised ranges cover 30 days."""
    return RANGE_DAYS.get(range_label, FALLBACK_DAYS)


def bucket_prefix(date: str, hour: int) -> str:
    return f"events/{date}/{hour:02d}/"


def _load_day(store: ObjectStore, date: str) -> Optional[DailyStats]:
    try:
        raw = store.get_json(stats_key(date))
        if not raw:
            return None
        stats = DailyStats.model_validate(raw)
    except (StoreReadError, ValidationError) as e:
        logger.warning(f"Skipping unreadable stats for {date}: {e}")
        return None
    # Reports always label a day by the date it was fetched under
    stats.date = date
    return stats


def _load_event(store: ObjectStore, key: str) -> Optional[EventRecord]:
    try:
        raw = store.get_json(key)
        if not raw:
            return None
        return EventRecord.model_validate(raw)
    except (StoreReadError, ValidationError) as e:
        logger.warning(f"Skipping unreadable event {key}: {e}")
        return None


def _list_bucket(store: ObjectStore, prefix: str) -> List[str]:
    try:
        return store.list_keys(prefix)
    except StoreReadError as e:
        logger.warning(f"Skipping unlistable bucket {prefix}: {e}")
        return []


def summarize(
    store: ObjectStore,
    range_label: str = DEFAULT_RANGE,
    tz: str = "UTC",
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Summary over the last N calendar dates, today included.
    Missing days contribute nothing.
    """
    now = resolve_now(now_ms)
    daily = []
    for date in recent_dates(range_days(range_label), now, tz):
        stats = _load_day(store, date)
        if stats is not None:
            daily.append(stats)

    logger.debug(f"Summary {range_label}: {len(daily)} days with data")
    return format_summary(merge(daily), daily, range_label, now, store.mode)


def realtime(
    store: ObjectStore,
    tz: str = "UTC",
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Activity in the last 30 minutes.

    Only the current and previous hour buckets of today's date are scanned,
    so near an hour boundary part of the 30-minute window can be missed.
    """
    now = resolve_now(now_ms)
    window_start = now - REALTIME_WINDOW_MS
    today = date_key(now, tz)
    hour = hour_of(now, tz)
    prev_hour = (hour - 1) % 24

    recent: List[EventRecord] = []
    for h in (prev_hour, hour):
        keys = _list_bucket(store, bucket_prefix(today, h))
        for key in keys[-REALTIME_KEYS_PER_BUCKET:]:
            event = _load_event(store, key)
            if event is not None and event.timestamp >= window_start:
                recent.append(event)

    return format_realtime(recent, now, now - ACTIVE_WINDOW_MS, store.mode)


def recent_events(
    store: ObjectStore,
    limit: int = 100,
    tz: str = "UTC",
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Best-effort listing of the newest raw events from today and yesterday,
    walking hour buckets newest first until `limit` records are collected.
    """
    now = resolve_now(now_ms)
    events: List[EventRecord] = []

    for date in recent_dates(2, now, tz):
        for h in range(23, -1, -1):
            if len(events) >= limit:
                break
            for key in reversed(_list_bucket(store, bucket_prefix(date, h))):
                if len(events) >= limit:
                    break
                event = _load_event(store, key)
                if event is not None:
                    events.append(event)
        if len(events) >= limit:
            break

    return format_events(events, now, store.mode)


def run_query(
    store: ObjectStore,
    report_type: str = "summary",
    range_label: str = DEFAULT_RANGE,
    limit: int = 100,
    tz: str = "UTC",
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """Dispatch a report request. Raises InvalidQuery for unknown types."""
    if report_type == "summary":
        return summarize(store, range_label, tz, now_ms)
    if report_type == "realtime":
        return realtime(store, tz, now_ms)
    if report_type == "events":
        return recent_events(store, limit, tz, now_ms)
    raise InvalidQuery(report_type)
