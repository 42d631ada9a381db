import logging
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlsplit

from soil_analytics.models import CARDS, DailyStats, EventKind, EventRecord, SummaryTotals
from soil_analytics.models.stats import HOURS_PER_DAY
from soil_analytics.pipeline.timeutils import hour_of

logger = logging.getLogger("SoilAnalytics.Rollup")

UNKNOWN_COUNTRY = "unknown"
DIRECT_REFERER = "direct"


def stats_key(date: str) -> str:
    return f"stats/{date}"


def _duration(data: Dict[str, Any]) -> Optional[float]:
    """Numeric, non-zero `duration` from an event's data bag, else None."""
    value = (data or {}).get("duration")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value or None


def referer_host(referer: str) -> Optional[str]:
    """Hostname of an absolute referer URL, or None when it cannot be parsed."""
    try:
        host = urlsplit(referer).hostname
    except ValueError:
        host = None
    if not host:
        logger.debug(f"Skipping malformed referer: {referer!r}")
        return None
    return host


def _on_page_view(stats: DailyStats, event: EventRecord):
    stats.pageViews += 1
    if event.visitorHash and event.visitorHash not in stats.uniqueVisitors:
        stats.uniqueVisitors.append(event.visitorHash)


def _on_session_start(stats: DailyStats, event: EventRecord):
    stats.sessions += 1


def _on_card_hover_start(stats: DailyStats, event: EventRecord):
    if event.card in CARDS:
        stats.cardHovers[event.card] = stats.cardHovers.get(event.card, 0) + 1


def _on_card_hover_end(stats: DailyStats, event: EventRecord):
    duration = _duration(event.data)
    if event.card in CARDS and duration is not None:
        stats.cardHoverTime[event.card] = stats.cardHoverTime.get(event.card, 0) + duration


def _on_card_click(stats: DailyStats, event: EventRecord):
    if event.card in CARDS:
        stats.cardClicks[event.card] = stats.cardClicks.get(event.card, 0) + 1


def _on_session_end(stats: DailyStats, event: EventRecord):
    duration = _duration(event.data)
    if duration is not None:
        stats.totalSessionDuration += duration


# Kinds missing here only touch the always-applied counters
COUNTER_HANDLERS = {
    EventKind.page_view.value: _on_page_view,
    EventKind.session_start.value: _on_session_start,
    EventKind.card_hover_start.value: _on_card_hover_start,
    EventKind.card_hover_end.value: _on_card_hover_end,
    EventKind.card_click.value: _on_card_click,
    EventKind.session_end.value: _on_session_end,
}


def fold(
    existing: Optional[DailyStats],
    event: EventRecord,
    date: str,
    now_ms: int,
    tz: str = "UTC",
) -> DailyStats:
    """
    Combine one event into a daily aggregate and return the updated copy.
    `existing` is left untouched; None starts from a zeroed record for `date`.
    """
    stats = existing.model_copy(deep=True) if existing is not None else DailyStats(date=date)

    handler = COUNTER_HANDLERS.get(event.event)
    if handler:
        handler(stats, event)

    country = event.client.country
    if country and country != UNKNOWN_COUNTRY:
        stats.countries[country] = stats.countries.get(country, 0) + 1

    referer = event.client.referer
    if referer and referer != DIRECT_REFERER:
        host = referer_host(referer)
        if host:
            stats.referers[host] = stats.referers.get(host, 0) + 1

    if len(stats.hourlyActivity) < HOURS_PER_DAY:
        stats.hourlyActivity.extend([0] * (HOURS_PER_DAY - len(stats.hourlyActivity)))
    stats.hourlyActivity[hour_of(event.timestamp, tz)] += 1
    stats.lastUpdated = now_ms
    return stats


def _add_counts(target: Dict[str, Any], source: Optional[Dict[str, Any]]):
    for key, count in (source or {}).items():
        target[key] = target.get(key, 0) + (count or 0)


def merge(days: Iterable[DailyStats]) -> SummaryTotals:
    """
    Merge daily aggregates into range totals.
    Counters and per-key mappings are summed, hourly slots are summed
    element-wise and unique visitors are unioned across the whole range.
    """
    totals = SummaryTotals()
    seen = set()

    for day in days:
        totals.pageViews += day.pageViews or 0
        totals.sessions += day.sessions or 0
        totals.totalSessionDuration += day.totalSessionDuration or 0

        for visitor in day.uniqueVisitors or []:
            if visitor not in seen:
                seen.add(visitor)
                totals.uniqueVisitors.append(visitor)

        for card in CARDS:
            totals.cardHovers[card] += (day.cardHovers or {}).get(card, 0) or 0
            totals.cardClicks[card] += (day.cardClicks or {}).get(card, 0) or 0
            totals.cardHoverTime[card] += (day.cardHoverTime or {}).get(card, 0) or 0

        _add_counts(totals.countries, day.countries)
        _add_counts(totals.referers, day.referers)

        for hour, count in enumerate((day.hourlyActivity or [])[: len(totals.hourlyActivity)]):
            totals.hourlyActivity[hour] += count or 0

    return totals
