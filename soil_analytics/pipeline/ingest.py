import logging
import secrets
import string
from typing import Optional

from soil_analytics.errors import InvalidEvent
from soil_analytics.models import (
    VALID_EVENTS,
    ClientInfo,
    ClientSnapshot,
    DailyStats,
    EventCreate,
    EventRecord,
)
from soil_analytics.pipeline.fingerprint import visitor_hash
from soil_analytics.pipeline.rollup import fold, stats_key
from soil_analytics.pipeline.timeutils import date_key, hour_key, in_range, resolve_now
from soil_analytics.store import ObjectStore

logger = logging.getLogger("SoilAnalytics.Ingest")

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
SUFFIX_LENGTH = 9


def event_key(server_ms: int, tz: str) -> str:
    """Bucketed key for a raw event: events/<date>/<hour>/<millis>-<rand>."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"events/{date_key(server_ms, tz)}/{hour_key(server_ms, tz)}/{server_ms}-{suffix}"


def build_record(
    event_data: EventCreate,
    client: ClientInfo,
    server_ms: int,
    default_page: str = "gateway",
) -> EventRecord:
    """
    Validate the event kind and normalize optional fields.
    Raises InvalidEvent when the kind is missing or unknown. A client
    timestamp that cannot be placed on the calendar is replaced by server time.
    """
    kind = event_data.event
    if not isinstance(kind, str) or kind not in VALID_EVENTS:
        raise InvalidEvent(kind)

    timestamp = event_data.timestamp or server_ms
    if not in_range(timestamp):
        logger.debug(f"Replacing out-of-range timestamp {timestamp} with server time")
        timestamp = server_ms

    return EventRecord(
        event=kind,
        page=event_data.page or default_page,
        card=event_data.card or None,
        data=event_data.data or {},
        sessionId=event_data.sessionId or None,
        visitorHash=visitor_hash(client.ip, client.userAgent),
        timestamp=timestamp,
        serverTime=server_ms,
        client=ClientSnapshot(country=client.country, referer=client.referer),
    )


def update_stats(
    store: ObjectStore,
    record: EventRecord,
    date: str,
    now_ms: int,
    tz: str = "UTC",
) -> DailyStats:
    """
    Read-modify-write of the daily aggregate. Concurrent writers on the same
    date race and the last write wins.
    """
    key = stats_key(date)
    raw = store.get_json(key)
    existing = DailyStats.model_validate(raw) if raw else None
    stats = fold(existing, record, date, now_ms, tz)
    store.set_json(key, stats.model_dump(mode="json"))
    return stats


def ingest(
    store: ObjectStore,
    event_data: EventCreate,
    client: ClientInfo,
    tz: str = "UTC",
    default_page: str = "gateway",
    now_ms: Optional[int] = None,
) -> str:
    """
    Persist one raw event and fold it into the daily aggregate.

    Both the bucket key and the aggregate date come from server time; the
    event's own timestamp only selects the hourly-activity slot. Store
    failures propagate and nothing already written is rolled back.
    """
    server_ms = resolve_now(now_ms)
    record = build_record(event_data, client, server_ms, default_page)

    key = event_key(server_ms, tz)
    store.set_json(key, record.model_dump(mode="json"))
    logger.debug(f"Stored {record.event} event at {key}")

    update_stats(store, record, date_key(server_ms, tz), server_ms, tz)
    return key
