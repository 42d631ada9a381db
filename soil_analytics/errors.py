class AnalyticsError(Exception):
    """Base class for every error raised by the analytics pipeline."""


class InvalidEvent(AnalyticsError):
    """The event kind is missing or not one of the tracked kinds."""

    def __init__(self, event_kind=None):
        self.event_kind = event_kind
        super().__init__(f"Invalid event type: {event_kind!r}")


class InvalidQuery(AnalyticsError):
    """The requested report type is unknown."""

    def __init__(self, report_type):
        self.report_type = report_type
        super().__init__(f"Invalid type: {report_type!r}")


class StoreError(AnalyticsError):
    """The object store failed to serve a request."""


class StoreUnavailable(StoreError):
    """The object store could not be reached."""


class StoreReadError(StoreError):
    """A stored value could not be read or decoded."""
