from soil_analytics.models.event import (
    CARDS,
    VALID_EVENTS,
    Card,
    ClientInfo,
    ClientSnapshot,
    EventCreate,
    EventKind,
    EventRecord,
)
from soil_analytics.models.stats import DailyStats, SummaryTotals
