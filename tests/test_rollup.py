import pytest

from soil_analytics.models import ClientSnapshot, DailyStats, EventRecord
from soil_analytics.pipeline.rollup import fold, merge, referer_host

from .conftest import NOW, epoch_ms

DATE = "2026-03-10"


def record(event, card=None, data=None, visitor="v1", timestamp=NOW, country=None, referer=None):
    return EventRecord(
        event=event,
        page="gateway",
        card=card,
        data=data or {},
        visitorHash=visitor,
        timestamp=timestamp,
        serverTime=timestamp,
        client=ClientSnapshot(country=country, referer=referer),
    )


def fold_all(events, existing=None):
    stats = existing
    for event in events:
        stats = fold(stats, event, DATE, NOW)
    return stats


def test_fold_from_nothing_starts_zeroed():
    stats = fold(None, record("page_hidden"), DATE, NOW)

    assert stats.date == DATE
    assert stats.pageViews == 0
    assert stats.uniqueVisitors == []
    assert stats.cardHovers == {"voice": 0, "value": 0, "agent": 0}
    assert stats.sessions == 0
    assert len(stats.hourlyActivity) == 24
    assert sum(stats.hourlyActivity) == 1
    assert stats.lastUpdated == NOW


def test_fold_counter_table():
    stats = fold_all([
        record("page_view"),
        record("session_start"),
        record("card_hover_start", card="voice"),
        record("card_hover_end", card="voice", data={"duration": 1200}),
        record("card_click", card="agent"),
        record("session_end", data={"duration": 45000}),
        record("iframe_ready"),
    ])

    assert stats.pageViews == 1
    assert stats.uniqueVisitors == ["v1"]
    assert stats.sessions == 1
    assert stats.cardHovers == {"voice": 1, "value": 0, "agent": 0}
    assert stats.cardHoverTime == {"voice": 1200, "value": 0, "agent": 0}
    assert stats.cardClicks == {"voice": 0, "value": 0, "agent": 1}
    assert stats.totalSessionDuration == 45000
    assert stats.hourlyActivity[14] == 7


def test_repeat_page_view_counts_visitor_once():
    stats = fold_all([record("page_view", visitor="v1"), record("page_view", visitor="v1")])

    assert stats.pageViews == 2
    assert stats.uniqueVisitors == ["v1"]


def test_unknown_card_and_missing_duration_are_dropped():
    stats = fold_all([
        record("card_hover_start", card="mystery"),
        record("card_click", card=None),
        record("card_hover_end", card="value"),
        record("card_hover_end", card="value", data={"duration": "long"}),
        record("session_end", data={}),
    ])

    assert stats.cardHovers == {"voice": 0, "value": 0, "agent": 0}
    assert stats.cardClicks == {"voice": 0, "value": 0, "agent": 0}
    assert stats.cardHoverTime == {"voice": 0, "value": 0, "agent": 0}
    assert "mystery" not in stats.cardHovers
    assert stats.totalSessionDuration == 0
    # Still counted as activity
    assert stats.hourlyActivity[14] == 5


def test_country_and_referer_counting():
    stats = fold_all([
        record("page_view", country="NZ", referer="https://news.example.com/a?b=1"),
        record("card_click", country="NZ", referer="https://News.Example.com/other"),
        record("page_view", country="unknown", referer="direct"),
        record("page_view", country=None, referer="not a url"),
    ])

    assert stats.countries == {"NZ": 2}
    assert stats.referers == {"news.example.com": 2}


@pytest.mark.parametrize("referer", ["not a url", "example.com/path", "http://[::1", ""])
def test_malformed_referers_have_no_host(referer):
    assert referer_host(referer) is None


def test_hourly_slot_comes_from_event_timestamp():
    early = epoch_ms(2026, 3, 10, 3, 15)
    stats = fold(None, record("page_view", timestamp=early), DATE, NOW)

    assert stats.hourlyActivity[3] == 1
    assert stats.hourlyActivity[14] == 0


def test_fold_does_not_mutate_existing():
    first = fold(None, record("page_view"), DATE, NOW)
    second = fold(first, record("page_view", visitor="v2"), DATE, NOW + 1)

    assert first.pageViews == 1
    assert first.uniqueVisitors == ["v1"]
    assert second.pageViews == 2
    assert second.uniqueVisitors == ["v1", "v2"]
    assert second.lastUpdated == NOW + 1


def test_fold_order_does_not_change_counters():
    events = [
        record("page_view", visitor="v1", country="DE"),
        record("card_hover_start", card="voice"),
        record("page_view", visitor="v2", timestamp=epoch_ms(2026, 3, 10, 9)),
        record("card_hover_end", card="voice", data={"duration": 300}),
        record("session_end", data={"duration": 1000}),
        record("page_view", visitor="v1"),
    ]
    forward = fold_all(events)
    backward = fold_all(list(reversed(events)))

    assert forward.pageViews == backward.pageViews
    assert set(forward.uniqueVisitors) == set(backward.uniqueVisitors)
    assert forward.cardHovers == backward.cardHovers
    assert forward.cardHoverTime == backward.cardHoverTime
    assert forward.totalSessionDuration == backward.totalSessionDuration
    assert forward.countries == backward.countries
    assert forward.hourlyActivity == backward.hourlyActivity


def test_merge_single_day_is_identity():
    day = fold_all([
        record("page_view", country="FR", referer="https://a.example.org/"),
        record("session_start"),
        record("card_hover_start", card="agent"),
        record("card_click", card="agent"),
    ])
    totals = merge([day])

    assert totals.pageViews == day.pageViews
    assert totals.uniqueVisitors == day.uniqueVisitors
    assert totals.cardHovers == day.cardHovers
    assert totals.cardClicks == day.cardClicks
    assert totals.sessions == day.sessions
    assert totals.countries == day.countries
    assert totals.referers == day.referers
    assert totals.hourlyActivity == day.hourlyActivity


def test_merge_unions_visitors_and_sums_counters():
    monday = DailyStats(
        date="2026-03-09",
        pageViews=3,
        uniqueVisitors=["a", "b"],
        countries={"NZ": 2},
        hourlyActivity=[1] * 24,
        cardHovers={"voice": 2, "value": 0, "agent": 0},
    )
    tuesday = DailyStats(
        date="2026-03-10",
        pageViews=2,
        uniqueVisitors=["b", "c"],
        countries={"NZ": 1, "AU": 4},
        hourlyActivity=[2] * 24,
        cardHovers={"voice": 1, "value": 5, "agent": 0},
    )
    totals = merge([monday, tuesday])

    assert totals.pageViews == 5
    assert totals.uniqueVisitors == ["a", "b", "c"]
    assert len(totals.uniqueVisitors) <= len(monday.uniqueVisitors) + len(tuesday.uniqueVisitors)
    assert totals.countries == {"NZ": 3, "AU": 4}
    assert totals.hourlyActivity == [3] * 24
    assert totals.cardHovers == {"voice": 3, "value": 5, "agent": 0}


def test_merge_tolerates_sparse_records():
    sparse = DailyStats.model_validate({"date": "2026-03-01", "pageViews": 4, "cardHovers": {"voice": 1}})
    totals = merge([sparse])

    assert totals.pageViews == 4
    assert totals.cardHovers == {"voice": 1, "value": 0, "agent": 0}
    assert totals.hourlyActivity == [0] * 24


def test_merge_of_nothing_is_empty():
    totals = merge([])

    assert totals.pageViews == 0
    assert totals.uniqueVisitors == []
    assert totals.hourlyActivity == [0] * 24


def test_fold_pads_short_hourly_activity():
    legacy = DailyStats(date=DATE, hourlyActivity=[1, 2])
    stats = fold(legacy, record("page_view"), DATE, NOW)

    assert len(stats.hourlyActivity) == 24
    assert stats.hourlyActivity[:2] == [1, 2]
    assert stats.hourlyActivity[14] == 1
