import json
import logging
from fastapi import (
    APIRouter,
    Depends,
    Query,
    Request,
)
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from typing import Any, Dict

from soil_analytics.config import settings
from soil_analytics.errors import InvalidEvent
from soil_analytics.limiter import limiter
from soil_analytics.models import ClientInfo, EventCreate
from soil_analytics.pipeline.ingest import ingest
from soil_analytics.pipeline.queries import DEFAULT_RANGE, run_query
from soil_analytics.store import ObjectStore, get_store

# Create an APIRouter
router = APIRouter(
    tags=["Events"]
)

logger = logging.getLogger("SoilAnalytics.Events")


async def parse_track_body(request: Request) -> EventCreate:
    """
    Read the tracking payload regardless of content type.
    The browser tracker uses sendBeacon, which posts JSON as text/plain.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw or b"{}")
    except ValueError:
        logger.warning("Rejected tracking call with a non-JSON body")
        raise InvalidEvent()

    if not isinstance(payload, dict):
        raise InvalidEvent()

    try:
        return EventCreate.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def get_client_info(request: Request) -> ClientInfo:
    """Extract the caller's address and the headers the rollup cares about."""
    headers = request.headers
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (request.client.host if request.client else None) or "unknown"

    return ClientInfo(
        ip=ip,
        userAgent=headers.get("user-agent") or "unknown",
        referer=headers.get("referer") or "direct",
        country=headers.get("x-country") or "unknown",
    )


# API Endpoints

@router.post("/track")
@limiter.limit(settings.TRACK_ENDPOINT_RATELIMIT)
def track_event(
    request: Request,
    event_data: EventCreate = Depends(parse_track_body),
    client: ClientInfo = Depends(get_client_info),
    store: ObjectStore = Depends(get_store),
):
    """
    Record one interaction event.
    The raw event and the day's aggregate are both written before responding.
    """
    event_key = ingest(
        store,
        event_data,
        client,
        tz=settings.TIMEZONE,
        default_page=settings.DEFAULT_PAGE,
    )
    logger.info(f"Tracked {event_data.event} -> {event_key}")

    return {"success": True, "mode": store.mode, "eventKey": event_key}


@router.get("/analytics")
def get_analytics(
    report_type: str = Query("summary", alias="type", description="Report to build: summary, realtime or events"),
    range_label: str = Query(DEFAULT_RANGE, alias="range", description="Summary window: 1d, 7d or 30d"),
    limit: int = Query(
        settings.EVENTS_DEFAULT_LIMIT,
        ge=1,
        le=settings.EVENTS_MAX_LIMIT,
        description="Maximum raw events for the events report"
    ),
    store: ObjectStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Read-side reports rebuilt from the stored aggregates and raw events:
    - summary: merged daily rollups over a range
    - realtime: the last 30 minutes of raw events
    - events: the most recent raw events
    """
    return run_query(
        store,
        report_type=report_type,
        range_label=range_label,
        limit=limit,
        tz=settings.TIMEZONE,
    )
