"""External event router — delivers correlated notifications to activities.

Inbound messages carry a correlation id naming exactly one activity. A
belief update upserts into that activity's belief map; an event lands in
its pending buffer and, if the activity is parked waiting for it, puts it
back on the scheduler's ready queue.

Two envelope shapes are accepted:

    {"kind": "event" | "belief", "correlationId": "...", "payload": {...}}

and the JSON-RPC notification shape emitted by tool servers:

    {"jsonrpc": "2.0", "method": "notifications/message",
     "params": {"uuid": "...", "mcpType": "event" | "variable", "event": {...}}}
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import uuid
from collections.abc import AsyncIterator, Mapping
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from asyncagent.activity import ActivityRegistry
from asyncagent.errors import RoutingError
from asyncagent.session.wire import EventType, Wire

if TYPE_CHECKING:
    from asyncagent.agent.scheduler import Scheduler

logger = logging.getLogger(__name__)

_KIND_ALIASES = {"event": "event", "belief": "belief", "variable": "belief"}
_ENVELOPE_KEYS = frozenset(
    {"kind", "mcpType", "correlationId", "correlation_id", "uuid"}
)


class RouteOutcome(enum.Enum):
    """What the router did with a message."""

    APPLIED_BELIEF = "applied_belief"
    BUFFERED_EVENT = "buffered_event"
    WOKE_ACTIVITY = "woke_activity"
    DROPPED = "dropped"


class Envelope(BaseModel):
    """A normalized inbound message."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: Literal["event", "belief"] | None = None
    correlation_id: str | None = Field(default=None, alias="correlationId")
    payload: Any = None

    @property
    def belief_key(self) -> str | None:
        if not isinstance(self.payload, Mapping):
            return None
        key = self.payload.get("key", self.payload.get("name"))
        return str(key) if key is not None else None

    @property
    def belief_value(self) -> Any:
        if not isinstance(self.payload, Mapping):
            return None
        return self.payload.get("value")

    @classmethod
    def from_message(cls, message: str | bytes | Mapping[str, Any]) -> Envelope:
        """Normalize either envelope shape.

        Raises:
            RoutingError: the message is not a JSON object.
        """
        if isinstance(message, (str, bytes)):
            try:
                message = json.loads(message)
            except json.JSONDecodeError as e:
                raise RoutingError(f"message is not valid JSON: {e}") from e
        if not isinstance(message, Mapping):
            raise RoutingError("message is not a JSON object")

        params = message.get("params")
        body: Mapping[str, Any] = params if isinstance(params, Mapping) else message

        raw_kind = body.get("kind", body.get("mcpType"))
        kind = _KIND_ALIASES.get(str(raw_kind).lower()) if raw_kind is not None else None

        correlation_id = None
        for key in ("correlationId", "correlation_id", "uuid"):
            value = body.get(key)
            if value is not None and str(value).strip():
                correlation_id = str(value).strip()
                break

        residual = {k: v for k, v in body.items() if k not in _ENVELOPE_KEYS}
        if kind == "event":
            payload = _event_payload(body, residual)
        elif kind == "belief":
            payload = body["payload"] if isinstance(body.get("payload"), Mapping) else residual
        else:
            payload = body.get("payload", residual)

        return cls(kind=kind, correlation_id=correlation_id, payload=payload)


def _event_payload(body: Mapping[str, Any], residual: dict[str, Any]) -> Any:
    if "payload" in body:
        payload = body["payload"]
    elif "event" in body:
        payload = body["event"]
    else:
        return residual

    # Some servers double-wrap: {"event": {"event": {...}}}
    if (
        isinstance(payload, Mapping)
        and isinstance(payload.get("event"), Mapping)
        and "key" not in payload
    ):
        payload = payload["event"]
    return payload


class EventRouter:
    """Routes inbound messages to activities by correlation id.

    ``route`` must run on the event loop thread (it may requeue onto the
    scheduler). Producers on other threads use ``route_threadsafe``.
    """

    def __init__(
        self,
        registry: ActivityRegistry,
        scheduler: Scheduler,
        wire: Wire | None = None,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._wire = wire
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attach the event loop that ``route_threadsafe`` hands messages to.

        Must be called from the asyncio thread (or pass an explicit loop).
        """
        self._loop = loop or asyncio.get_running_loop()

    def route(self, message: str | bytes | Mapping[str, Any]) -> RouteOutcome:
        try:
            envelope = Envelope.from_message(message)
        except (RoutingError, ValueError) as e:
            return self._drop(f"Dropping malformed inbound message: {e}", warn=True)

        if envelope.correlation_id is None:
            return self._drop(
                f"Received message without correlation id, ignoring: {envelope.payload!r}",
                warn=True,
            )

        activity = self._registry.get(envelope.correlation_id)
        if activity is None:
            return self._drop(
                f"Received message for unknown or completed activity: {envelope.correlation_id}",
                correlation_id=envelope.correlation_id,
            )

        if envelope.kind == "belief":
            key = envelope.belief_key or f"var_{uuid.uuid4()}"
            value = envelope.belief_value
            if value is None:
                return self._drop(
                    f"Belief update for {activity.id} has no value: {key}",
                    correlation_id=activity.id,
                )
            activity.set_belief(key, value)
            logger.info("Belief stored in activity %s: %s -> %r", activity.id, key, value)
            return RouteOutcome.APPLIED_BELIEF

        if envelope.kind == "event":
            if activity.push_event_and_wake(envelope.payload):
                self._scheduler.enqueue(activity)
                logger.info("Woke activity %s, resumed to OBSERVATION", activity.id)
                if self._wire:
                    self._wire.emit(EventType.WOKEN, activity_id=activity.id, reason="event")
                return RouteOutcome.WOKE_ACTIVITY
            logger.debug(
                "Event for %s buffered while activity is %s",
                activity.id,
                activity.status.name,
            )
            return RouteOutcome.BUFFERED_EVENT

        return self._drop(
            f"Ignored message (not event/belief) for {activity.id}",
            correlation_id=activity.id,
        )

    def route_threadsafe(self, message: str | bytes | Mapping[str, Any]) -> None:
        """Hand a message to the loop thread. For producers on other threads."""
        if self._loop is None:
            raise RuntimeError("EventRouter.attach_loop() has not been called")
        self._loop.call_soon_threadsafe(self.route, message)

    async def consume(self, stream: AsyncIterator[str | bytes | Mapping[str, Any]]) -> int:
        """Route every message from ``stream`` until it is exhausted.

        Returns the number of messages that reached an activity.
        """
        delivered = 0
        async for message in stream:
            if self.route(message) is not RouteOutcome.DROPPED:
                delivered += 1
        return delivered

    def _drop(
        self, reason: str, correlation_id: str | None = None, warn: bool = False
    ) -> RouteOutcome:
        if warn:
            logger.warning(reason)
        else:
            logger.debug(reason)
        if self._wire:
            self._wire.emit(EventType.DROPPED, reason=reason, correlation_id=correlation_id)
        return RouteOutcome.DROPPED
