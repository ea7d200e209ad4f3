from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Mapping, Protocol, cast

import redis

from scenie.core.events import InteractionEvent

logger = logging.getLogger(__name__)

Verbosity = Literal["console", "silent", "server"]


class EventSink(Protocol):
    def emit(self, event: InteractionEvent) -> None: ...


@dataclass(frozen=True, slots=True)
class EventStream:
    session_id: str

    @property
    def key(self) -> str:
        return f"events:{self.session_id}"


def publish_event(*, r: redis.Redis, stream: EventStream, fields: Mapping[str, str]) -> str:
    """Append one interaction record to a session's event stream."""

    # redis-py stubs expect field/value unions; we only ever write strings.
    stream_id = r.xadd(stream.key, {str(k): str(v) for k, v in fields.items()})
    return cast(str, stream_id)


class LoggingEventSink:
    def emit(self, event: InteractionEvent) -> None:
        logger.info("EMIT: %s", event.as_fields())


class SilentEventSink:
    def emit(self, event: InteractionEvent) -> None:
        return None


class RedisStreamEventSink:
    """Publishes interaction records to the session's Redis Stream.

    Transport failures are logged and dropped; they never reach the engines.
    """

    def __init__(self, *, r: redis.Redis, stream: EventStream) -> None:
        self._r = r
        self._stream = stream

    def emit(self, event: InteractionEvent) -> None:
        try:
            publish_event(r=self._r, stream=self._stream, fields=event.as_fields())
        except redis.RedisError as e:
            logger.warning("Dropping %s event for %s: %s", event.action, self._stream.key, e)


def make_event_sink(*, verbosity: Verbosity, r: redis.Redis | None, session_id: str) -> EventSink:
    if verbosity == "silent":
        return SilentEventSink()
    if verbosity == "server":
        if r is None:
            raise ValueError("server verbosity needs a redis client")
        return RedisStreamEventSink(r=r, stream=EventStream(session_id=session_id))
    return LoggingEventSink()
