"""
Progress event protocol.

Every request produces an ordered, append-only sequence of ProgressEvents.
In streaming mode each event is also pushed to a sink the moment it is
emitted; without a sink the same events are simply recorded.

Frame shape (one JSON object per line on the wire):

    {"Data": ..., "Error": ..., "Status": bool,
     "StreamingStatus": "STARTED"|"IN-PROGRESS"|"ERROR"|"COMPLETED",
     "Action": "NOTIFICATION"|"MESSAGE"|"AI-RESPONSE"|"ERROR"|"NO-ACTION"}
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class StreamingStatus(str, Enum):
    STARTED = "STARTED"
    IN_PROGRESS = "IN-PROGRESS"
    ERROR = "ERROR"
    COMPLETED = "COMPLETED"


class EventAction(str, Enum):
    NOTIFICATION = "NOTIFICATION"
    MESSAGE = "MESSAGE"
    AI_RESPONSE = "AI-RESPONSE"
    ERROR = "ERROR"
    NO_ACTION = "NO-ACTION"


TERMINAL_STATUSES = frozenset({StreamingStatus.COMPLETED, StreamingStatus.ERROR})


class ProgressEvent(BaseModel):
    """One progress notification."""

    data: Any = Field(default=None, alias="Data")
    error: Any = Field(default=None, alias="Error")
    status: bool = Field(default=True, alias="Status")
    streaming_status: StreamingStatus = Field(alias="StreamingStatus")
    action: EventAction = Field(alias="Action")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_terminal(self) -> bool:
        return self.streaming_status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_frame(self) -> str:
        """Newline-terminated JSON frame for streaming transports."""
        return self.model_dump_json(by_alias=True) + "\n"


EventSink = Callable[[ProgressEvent], Awaitable[None] | None]


class ProgressEmitter:
    """
    Append-only event log with an optional push sink.

    Args:
        sink: Called with every event as it is emitted. May be a plain
              function or a coroutine function. ``None`` means
              non-streaming mode: events are only recorded.
    """

    def __init__(self, sink: EventSink | None = None):
        self._sink = sink
        self._events: list[ProgressEvent] = []

    @property
    def streaming(self) -> bool:
        return self._sink is not None

    @property
    def events(self) -> list[ProgressEvent]:
        return list(self._events)

    @property
    def closed(self) -> bool:
        """True once a terminal event has been emitted."""
        return bool(self._events) and self._events[-1].is_terminal

    async def emit(
        self,
        streaming_status: StreamingStatus,
        action: EventAction,
        data: Any = None,
        error: Any = None,
        status: bool = True,
    ) -> ProgressEvent:
        if self.closed:
            raise RuntimeError("Cannot emit after a terminal event")

        event = ProgressEvent(
            data=data,
            error=error,
            status=status,
            streaming_status=streaming_status,
            action=action,
        )
        self._events.append(event)

        if self._sink is not None:
            try:
                outcome = self._sink(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                # A gone consumer must not abort the request; keep recording only
                logger.warning(f"Progress sink failed, streaming stopped: {e}")
                self._sink = None
        return event

    async def notify(self, message: str) -> ProgressEvent:
        return await self.emit(StreamingStatus.IN_PROGRESS, EventAction.NOTIFICATION, data=message)

    async def message(self, text: str) -> ProgressEvent:
        return await self.emit(StreamingStatus.IN_PROGRESS, EventAction.MESSAGE, data=text)
