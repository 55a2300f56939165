"""Fetch event schema.

Events are emitted by the fetch executor so the display layer can update its
live panels while sources are being collected. The runtime works the same
whether or not anything is listening to these events.
"""

from enum import Enum

from pydantic import BaseModel


class EventType(str, Enum):
    """The lifecycle stages a fetcher can emit events for.

    Values:
        STARTED: Fetcher has begun collecting.
        COMPLETE: Fetcher returned signals.
        ERROR: Fetcher raised and contributed nothing.
        TIMEOUT: Fetcher exceeded its timeout and was cancelled.
    """

    STARTED = "started"
    COMPLETE = "complete"
    ERROR = "error"
    TIMEOUT = "timeout"


class FetchEvent(BaseModel):
    """A single event emitted during the fetch phase.

    Attributes:
        source: Name of the fetcher. Maps to the panel heading in the live
            display.
        event_type: Lifecycle stage this event represents.
        message: Human-readable detail (e.g. "42 signals collected").
        timestamp_ms: Milliseconds since the fetch phase started.
    """

    source: str
    event_type: EventType
    message: str
    timestamp_ms: float
