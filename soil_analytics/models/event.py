from enum import Enum
from sqlmodel import Field, SQLModel
from typing import Any, Dict, Optional


class EventKind(str, Enum):
    """Interaction events emitted by the gateway page tracker."""
    page_view = "page_view"
    page_exit = "page_exit"
    page_hidden = "page_hidden"
    page_visible = "page_visible"
    card_hover_start = "card_hover_start"
    card_hover_end = "card_hover_end"
    card_click = "card_click"
    iframe_hover_start = "iframe_hover_start"
    iframe_hover_end = "iframe_hover_end"
    iframe_ready = "iframe_ready"
    session_start = "session_start"
    session_end = "session_end"


VALID_EVENTS = frozenset(kind.value for kind in EventKind)


class Card(str, Enum):
    voice = "voice"
    value = "value"
    agent = "agent"


CARDS = tuple(card.value for card in Card)


class EventCreate(SQLModel):
    """
    The data model the browser sends to the /track endpoint.
    `event` is kept loose here; the ingestor decides whether it is a known kind.
    """
    event: Optional[Any] = None
    page: Optional[str] = None
    card: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    sessionId: Optional[str] = None
    timestamp: Optional[int] = None


class ClientInfo(SQLModel):
    """Request metadata captured by the collector."""
    ip: str = "unknown"
    userAgent: str = "unknown"
    referer: str = "direct"
    country: str = "unknown"


class ClientSnapshot(SQLModel):
    """The part of ClientInfo persisted with each event."""
    country: Optional[str] = None
    referer: Optional[str] = None


class EventRecord(SQLModel):
    """
    A single stored interaction event. Written once, never mutated.
    `timestamp` is client-reported, `serverTime` is when the collector saw it.
    """
    event: str
    page: str
    card: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    sessionId: Optional[str] = None
    visitorHash: Optional[str] = None
    timestamp: int
    serverTime: Optional[int] = None
    client: ClientSnapshot = Field(default_factory=ClientSnapshot)
