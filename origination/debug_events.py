"""Per-session conversation tracing.

The orchestrator emits an event for every inbound message, resolved
intent, state transition and assessment delivery.  A ``TraceBroadcaster``
keeps a bounded log of them and fans each one out to subscriber queues, so
a console or an operator view can follow a conversation live.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TypedDict

log = logging.getLogger("origination.debug_events")

EVENT_LOG_LIMIT = 500
SUBSCRIBER_QUEUE_SIZE = 200


class TraceEvent(TypedDict):
    type: str          # message | intent | transition | assessment_* | error
    timestamp: float
    session_id: str
    state: str
    data: dict


class TraceBroadcaster:
    """Event log plus fan-out for one session."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._subscribers: list[asyncio.Queue[TraceEvent]] = []
        self._event_log: deque[TraceEvent] = deque(maxlen=EVENT_LOG_LIMIT)

    def subscribe(self) -> asyncio.Queue[TraceEvent]:
        q: asyncio.Queue[TraceEvent] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.append(q)
        log.debug("Trace subscriber added for %s (total: %d)",
                  self._session_id, len(self._subscribers))
        return q

    def emit(self, event_type: str, state: str, data: dict) -> None:
        event: TraceEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "state": state,
            "data": data,
        }
        self._event_log.append(event)

        for q in self._subscribers:
            if q.full():
                # Slow subscriber: drop its oldest event
                q.get_nowait()
            q.put_nowait(event)

    @property
    def event_log(self) -> list[TraceEvent]:
        return list(self._event_log)


# ── Registry ─────────────────────────────────────────────────────────

_broadcasters: dict[str, TraceBroadcaster] = {}


def get_broadcaster(session_id: str) -> TraceBroadcaster:
    """Get or create the broadcaster for a session."""
    broadcaster = _broadcasters.get(session_id)
    if broadcaster is None:
        broadcaster = TraceBroadcaster(session_id)
        _broadcasters[session_id] = broadcaster
    return broadcaster


def remove_broadcaster(session_id: str) -> None:
    _broadcasters.pop(session_id, None)


def has_broadcaster(session_id: str) -> bool:
    return session_id in _broadcasters
