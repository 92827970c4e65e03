"""Timer tool — an asynchronous side effect that reports back later.

``set`` returns immediately; when the timer fires, a ``timer.finished``
event is routed to the activity named by ``uuid``. ``subscribe`` routes a
``subscription.started`` acknowledgement right away.
"""

from __future__ import annotations

import asyncio
import logging
import uuid as uuid_mod
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from pydantic import BaseModel, Field

from asyncagent.tool.base import BaseTool, ToolError, ToolOk, ToolResult

if TYPE_CHECKING:
    from asyncagent.agent.router import EventRouter

logger = logging.getLogger(__name__)


class TimerParams(BaseModel):
    action: Literal["subscribe", "set"] = Field(
        description="'subscribe' to receive events for an activity, 'set' to start a timer."
    )
    uuid: str = Field(
        description="The activity id ('activityUuid' in the context). Events are delivered to it."
    )
    seconds: float | None = Field(
        default=None, gt=0, description="Timer duration in seconds (required for 'set')."
    )
    name: str | None = Field(default=None, description="Optional timer name.")


class TimerTool(BaseTool[TimerParams]):
    """Start timers whose expiry arrives later as an event."""

    name: ClassVar[str] = "timer"
    description: ClassVar[str] = (
        "Start a timer for the current activity. The call returns immediately; "
        "a 'timer.finished' event is delivered when it expires. Always pass the "
        "activity id from the context as 'uuid'."
    )
    param_model: ClassVar[type[BaseModel]] = TimerParams

    def __init__(self, router: EventRouter) -> None:
        self._router = router
        self._timers: dict[str, asyncio.Task[None]] = {}

    @property
    def active(self) -> list[str]:
        return list(self._timers.keys())

    async def execute(self, params: TimerParams) -> ToolResult:
        if params.action == "subscribe":
            self._router.route(
                _event(
                    params.uuid,
                    key="subscription-ack",
                    name="subscription.started",
                    message="Subscription successfully activated",
                )
            )
            return ToolOk(output="Subscription activated. Events will be delivered asynchronously.")

        if not params.seconds:
            return ToolError(output="Error: missing seconds.")

        timer_id = params.name or f"timer-{uuid_mod.uuid4()}"
        if timer_id in self._timers:
            return ToolError(output=f"Error: timer {timer_id} is already running.")

        task = asyncio.create_task(self._ring(timer_id, params.seconds, params.uuid))
        self._timers[timer_id] = task
        task.add_done_callback(lambda _t: self._timers.pop(timer_id, None))
        logger.info("Timer %s set for %gs (activity %s)", timer_id, params.seconds, params.uuid)
        return ToolOk(output=f"Timer {timer_id} set for {params.seconds:g}s.")

    async def _ring(self, timer_id: str, seconds: float, activity_id: str) -> None:
        await asyncio.sleep(seconds)
        logger.info("Timer %s expired (activity %s)", timer_id, activity_id)
        self._router.route(
            _event(
                activity_id,
                key=timer_id,
                name="timer.finished",
                message=f"Timer {timer_id} ({seconds:g}s) expired",
            )
        )

    def cancel_all(self) -> None:
        for task in list(self._timers.values()):
            task.cancel()
        self._timers.clear()


def _event(activity_id: str, **payload: Any) -> dict[str, Any]:
    return {"kind": "event", "correlationId": activity_id, "payload": payload}
