"""
Pure formatters turning merged totals and raw events into report payloads.
"""
import math
from typing import Any, Dict, Iterable, List, Sequence

from soil_analytics.models import CARDS, DailyStats, EventKind, EventRecord, SummaryTotals

TOP_N = 10
EVENT_STREAM_SIZE = 20
REALTIME_WINDOW = "30m"


def js_round(value: float) -> int:
    """Round half up, the way browsers do."""
    return int(math.floor(value + 0.5))


def peak_hour(hourly: Sequence[int]) -> int:
    """Index of the busiest hour; ties go to the earliest hour."""
    if not hourly:
        return 0
    return max(range(len(hourly)), key=lambda h: (hourly[h], -h))


def top_counts(counts: Dict[str, int], label: str, n: int = TOP_N) -> List[Dict[str, Any]]:
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:n]
    return [{label: name, "count": count} for name, count in ranked]


def card_engagement(totals: SummaryTotals) -> Dict[str, Dict[str, int]]:
    total_hovers = sum(totals.cardHovers[card] for card in CARDS)
    engagement = {}
    for card in CARDS:
        hovers = totals.cardHovers[card]
        clicks = totals.cardClicks[card]
        engagement[card] = {
            "hovers": hovers,
            "clicks": clicks,
            "avgHoverTime": js_round(totals.cardHoverTime[card] / hovers) if hovers > 0 else 0,
            "clickRate": js_round(clicks / hovers * 100) if hovers > 0 else 0,
            "share": js_round(hovers / total_hovers * 100) if total_hovers > 0 else 0,
        }
    return engagement


def bounce_rate(totals: SummaryTotals) -> int:
    """
    Share of page views without any card click. A click anywhere in the
    range counts against every page view, not just its own session.
    """
    if totals.sessions <= 0 or totals.pageViews <= 0:
        return 0
    total_clicks = sum(totals.cardClicks[card] for card in CARDS)
    return js_round((1 - total_clicks / totals.pageViews) * 100)


def avg_session_seconds(totals: SummaryTotals) -> int:
    if totals.sessions <= 0:
        return 0
    return js_round(totals.totalSessionDuration / totals.sessions / 1000)


def format_summary(
    totals: SummaryTotals,
    daily: Iterable[DailyStats],
    range_label: str,
    generated: int,
    mode: str,
) -> Dict[str, Any]:
    return {
        "range": range_label,
        "generated": generated,
        "mode": mode,
        "overview": {
            "pageViews": totals.pageViews,
            "uniqueVisitors": len(totals.uniqueVisitors),
            "sessions": totals.sessions,
            "avgSessionDuration": f"{avg_session_seconds(totals)}s",
            "bounceRate": bounce_rate(totals),
        },
        "cardEngagement": card_engagement(totals),
        "topCountries": top_counts(totals.countries, "country"),
        "topReferers": top_counts(totals.referers, "referer"),
        "hourlyActivity": list(totals.hourlyActivity),
        "peakHour": peak_hour(totals.hourlyActivity),
        "dailyStats": [
            {
                "date": day.date,
                "pageViews": day.pageViews or 0,
                "uniqueVisitors": len(day.uniqueVisitors or []),
                "sessions": day.sessions or 0,
            }
            for day in daily
        ],
    }


def format_realtime(
    events: List[EventRecord],
    generated: int,
    active_since: int,
    mode: str,
) -> Dict[str, Any]:
    """
    Realtime report over the already-windowed `events`. Visitors count as
    active only when they produced an event at or after `active_since`.
    """
    active_visitors = set()
    hovers = {card: 0 for card in CARDS}
    clicks = {card: 0 for card in CARDS}
    page_views = 0

    for event in events:
        if event.timestamp >= active_since:
            active_visitors.add(event.visitorHash)
        if event.event == EventKind.page_view.value:
            page_views += 1
        elif event.event == EventKind.card_hover_start.value and event.card in hovers:
            hovers[event.card] += 1
        elif event.event == EventKind.card_click.value and event.card in clicks:
            clicks[event.card] += 1

    stream = sorted(events, key=lambda e: e.timestamp, reverse=True)[:EVENT_STREAM_SIZE]

    return {
        "generated": generated,
        "mode": mode,
        "window": REALTIME_WINDOW,
        "activeVisitors": len(active_visitors),
        "pageViews": page_views,
        "cardActivity": {
            card: {"hovers": hovers[card], "clicks": clicks[card]} for card in CARDS
        },
        "eventStream": [
            {
                "event": e.event,
                "card": e.card,
                "timestamp": e.timestamp,
                "country": e.client.country,
            }
            for e in stream
        ],
    }


def format_events(events: List[EventRecord], generated: int, mode: str) -> Dict[str, Any]:
    ordered = sorted(events, key=lambda e: e.timestamp, reverse=True)
    return {
        "generated": generated,
        "mode": mode,
        "count": len(ordered),
        "events": [e.model_dump(mode="json") for e in ordered],
    }
