from sqlmodel import Field, SQLModel
from typing import Dict, List, Optional, Union

from soil_analytics.models.event import CARDS

Number = Union[int, float]

HOURS_PER_DAY = 24


def empty_card_counters() -> Dict[str, Number]:
    return {card: 0 for card in CARDS}


def empty_hourly_activity() -> List[int]:
    return [0] * HOURS_PER_DAY


class DailyStats(SQLModel):
    """
    Rolling aggregate for one calendar date, stored at `stats/<date>`.
    `uniqueVisitors` is a list with set semantics, kept in first-seen order.
    """
    date: str
    pageViews: int = 0
    uniqueVisitors: List[str] = Field(default_factory=list)
    cardHovers: Dict[str, Number] = Field(default_factory=empty_card_counters)
    cardClicks: Dict[str, Number] = Field(default_factory=empty_card_counters)
    cardHoverTime: Dict[str, Number] = Field(default_factory=empty_card_counters)
    sessions: int = 0
    totalSessionDuration: Number = 0
    countries: Dict[str, int] = Field(default_factory=dict)
    referers: Dict[str, int] = Field(default_factory=dict)
    hourlyActivity: List[int] = Field(default_factory=empty_hourly_activity)
    lastUpdated: Optional[int] = None


class SummaryTotals(SQLModel):
    """Counters merged across every day of a summary range."""
    pageViews: int = 0
    uniqueVisitors: List[str] = Field(default_factory=list)
    cardHovers: Dict[str, Number] = Field(default_factory=empty_card_counters)
    cardClicks: Dict[str, Number] = Field(default_factory=empty_card_counters)
    cardHoverTime: Dict[str, Number] = Field(default_factory=empty_card_counters)
    sessions: int = 0
    totalSessionDuration: Number = 0
    countries: Dict[str, int] = Field(default_factory=dict)
    referers: Dict[str, int] = Field(default_factory=dict)
    hourlyActivity: List[int] = Field(default_factory=empty_hourly_activity)
