"""Scheduler — the single-writer event loop that drives activities.

One worker pulls one ready activity at a time and executes exactly one
phase transition for it:

    OBSERVATION -> REASONING -> ACTION -> (WAITING_FOR_EVENT ->) OBSERVATION -> ...

After each transition the activity is requeued, parked (it then lives only
in the registry until the router wakes it), or dropped once COMPLETED.
Collaborator calls are awaited one at a time, so their latency is
serialized across all in-flight activities.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict, deque
from typing import Any, Awaitable, Callable, Coroutine

from asyncagent.activity import (
    PAST_EXPERIENCE_KEY,
    PROGRESS_KEY,
    Activity,
    ActivityRegistry,
    ActivityStatus,
    Step,
)
from asyncagent.agent.parsing import parse_observation, parse_reflection, parse_tool_name
from asyncagent.brain.protocol import ReasoningCollaborator
from asyncagent.config import SchedulerConfig
from asyncagent.context import build_context, render_events, render_history
from asyncagent.errors import CollaboratorInvocationError
from asyncagent.memory import MemoryStore
from asyncagent.session.audit import append_audit_record
from asyncagent.session.wire import EventType, Wire

logger = logging.getLogger(__name__)

OUTCOME_COMPLETED = "COMPLETED"
OUTCOME_ABANDONED = "ABANDONED"
PARK_TIMEOUT_EVENT = "park.timeout"


class ReadyQueue:
    """FIFO of activities ready for their next phase.

    Single consumer. Unlike ``asyncio.Queue`` it can answer whether an
    activity is currently queued. Must only be touched from the event
    loop thread.
    """

    def __init__(self) -> None:
        self._items: deque[Activity] = deque()
        self._not_empty = asyncio.Event()

    def put(self, activity: Activity) -> None:
        self._items.append(activity)
        self._not_empty.set()

    async def get(self, timeout: float) -> Activity | None:
        """Pop the next activity, or None if nothing arrives within ``timeout``."""
        if not self._items:
            self._not_empty.clear()
            try:
                await asyncio.wait_for(self._not_empty.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                return None
        if not self._items:
            return None
        return self._items.popleft()

    def ids(self) -> list[str]:
        return [a.id for a in self._items]

    def __contains__(self, activity_id: object) -> bool:
        return any(a.id == activity_id for a in self._items)

    def __len__(self) -> int:
        return len(self._items)


class Scheduler:
    """Drives activities through their phases.

    Owns the ready queue, the completed-activity archive, and the
    background tasks spawned on completion (reflection, audit export).
    """

    def __init__(
        self,
        collaborator: ReasoningCollaborator,
        registry: ActivityRegistry,
        config: SchedulerConfig | None = None,
        memory: MemoryStore | None = None,
        wire: Wire | None = None,
    ) -> None:
        self._collaborator = collaborator
        self._registry = registry
        self._config = config or SchedulerConfig()
        self._memory = memory
        self._wire = wire
        self._queue = ReadyQueue()
        self._running = False
        self._background: set[asyncio.Task[Any]] = set()
        self._archive: OrderedDict[str, Activity] = OrderedDict()

    @property
    def queue(self) -> ReadyQueue:
        return self._queue

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_background(self) -> int:
        return len(self._background)

    def enqueue(self, activity: Activity) -> None:
        self._queue.put(activity)

    def completed(self, activity_id: str) -> Activity | None:
        """A recently completed activity, kept for polling after deregistration."""
        return self._archive.get(activity_id)

    # --- Loop control ---

    async def run(self) -> None:
        """Run until :meth:`stop` is called.

        The stop flag is checked between dequeues; an in-flight collaborator
        call is allowed to finish.
        """
        self._running = True
        logger.info("Agent event loop started")
        try:
            while self._running:
                await self.run_once()
        finally:
            self._running = False
            logger.info("Agent event loop stopped")

    def stop(self) -> None:
        self._running = False

    async def run_once(self, timeout: float | None = None) -> bool:
        """Dequeue and process at most one activity.

        Returns False if the queue stayed empty for ``timeout`` seconds
        (default: the configured poll interval).
        """
        self._sweep_parked()

        activity = await self._queue.get(
            self._config.poll_interval if timeout is None else timeout
        )
        if activity is None:
            return False

        try:
            await self._process(activity)
        except Exception as e:
            # One malfunctioning activity must not take the loop down.
            logger.error(
                "Error while processing activity %s: %s", activity.id, e, exc_info=True
            )
            if self._wire:
                self._wire.send_error(str(e), activity_id=activity.id)
        return True

    async def drain(self) -> None:
        """Wait for background reflection/audit tasks to finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # --- Phase dispatch ---

    async def _process(self, activity: Activity) -> None:
        status = activity.status

        if status is ActivityStatus.COMPLETED:
            # Stale requeue of a finished activity; _complete already deregistered it.
            logger.debug("Skipping completed activity %s", activity.id)
            return

        logger.debug("Processing activity %s phase=%s", activity.id, status.name)
        self._emit(EventType.PHASE, activity_id=activity.id, phase=status.name)

        if status is ActivityStatus.REASONING:
            await self._reason(activity)
        elif status is ActivityStatus.ACTION:
            await self._act(activity)
        elif status is ActivityStatus.OBSERVATION:
            await self._observe(activity)
        else:
            # Parked activities are woken by the router, not by a stale queue entry.
            logger.warning(
                "Activity %s dequeued while %s, leaving it parked",
                activity.id,
                status.name,
            )

    async def _reason(self, activity: Activity) -> None:
        if activity.has_events():
            logger.info(
                "Events pending for activity %s in REASONING, skipping to OBSERVATION",
                activity.id,
            )
            activity.transition(ActivityStatus.OBSERVATION)
            self.enqueue(activity)
            return

        ctx = build_context(activity, self._config.window_size)
        result = await self._invoke(
            "reason",
            activity,
            self._collaborator.reason,
            ctx.goal,
            ctx.history,
            ctx.beliefs,
            ctx.progress,
        )

        self._record(activity, Step("reason", activity.goal, result, activity.snapshot_beliefs()))
        activity.transition(ActivityStatus.ACTION)
        logger.info("Activity %s moved to ACTION", activity.id)
        self.enqueue(activity)

    async def _act(self, activity: Activity) -> None:
        ctx = build_context(activity, self._config.window_size)
        result = await self._invoke(
            "act",
            activity,
            self._collaborator.act,
            ctx.goal,
            ctx.history,
            ctx.beliefs,
            ctx.progress,
        )
        logger.info("Action result for %s: %s", activity.id, result)

        tool_name = parse_tool_name(result)
        self._record(activity, Step("act", activity.goal, result, activity.snapshot_beliefs()))

        if tool_name is None:
            logger.info("No tool call for %s, proceeding to OBSERVATION", activity.id)
            activity.transition(ActivityStatus.OBSERVATION)
            self.enqueue(activity)
            return

        logger.info("Tool call detected for %s: %s", activity.id, tool_name)
        if activity.park_unless_events():
            logger.info("Suspending activity %s until an event arrives", activity.id)
            self._emit(EventType.PARKED, activity_id=activity.id, tool=tool_name)
        else:
            logger.info(
                "Event arrived during action for %s, skipping suspension", activity.id
            )
            self.enqueue(activity)

    async def _observe(self, activity: Activity) -> None:
        if self._memory is not None and not activity.history:
            await self._recall(activity)

        events = activity.consume_events()
        events_json = render_events(events)
        logger.debug("Serialized events for activity %s: %s", activity.id, events_json)

        ctx = build_context(activity, self._config.window_size)
        result = await self._invoke(
            "observe",
            activity,
            self._collaborator.observe,
            ctx.goal,
            ctx.history,
            ctx.beliefs,
            events_json,
            ctx.progress,
        )

        observation = parse_observation(result)
        if observation.new_progress is not None:
            activity.set_belief(PROGRESS_KEY, observation.new_progress)
            logger.info("Progress updated for %s:\n%s", activity.id, observation.new_progress)
        for key, value in observation.update_variables.items():
            activity.set_belief(key, value)
            logger.info("Belief update for %s: %s -> %r", activity.id, key, value)

        self._record(
            activity,
            Step("observe", activity.goal, result, activity.snapshot_beliefs(), tuple(events)),
        )

        if observation.completed:
            logger.info("Activity %s marked COMPLETED by observe", activity.id)
            self._complete(activity, OUTCOME_COMPLETED)
            return

        max_cycles = self._config.max_cycles
        if max_cycles is not None and activity.cycles >= max_cycles:
            logger.warning(
                "Activity %s gave up after %d cycles", activity.id, activity.cycles
            )
            self._complete(activity, OUTCOME_ABANDONED)
            return

        activity.transition(ActivityStatus.REASONING)
        activity.cycles += 1
        logger.info("Activity %s cycled back to REASONING", activity.id)
        self.enqueue(activity)

    # --- Helpers ---

    async def _invoke(
        self,
        operation: str,
        activity: Activity,
        call: Callable[..., Awaitable[str]],
        *args: str,
    ) -> str:
        """Await a collaborator call; failures become an empty result."""
        try:
            result = await call(*args)
        except Exception as e:
            error = CollaboratorInvocationError(operation, e)
            logger.error("Activity %s: %s", activity.id, error, exc_info=True)
            if self._wire:
                self._wire.send_error(str(error), activity_id=activity.id)
            return ""
        return "" if result is None else str(result)

    def _record(self, activity: Activity, step: Step) -> None:
        activity.add_step(step)
        self._emit(
            EventType.STEP,
            activity_id=activity.id,
            phase=step.phase,
            result=step.result,
        )

    async def _recall(self, activity: Activity) -> None:
        """Seed a fresh activity with similar past episodes."""
        if activity.get_belief(PAST_EXPERIENCE_KEY) is not None:
            return
        k = self._config.memory_top_k
        if k <= 0:
            return
        try:
            memories = await self._memory.retrieve_top_k(activity.goal, k)  # type: ignore[union-attr]
        except Exception as e:
            logger.warning("Memory retrieval failed for %s: %s", activity.id, e)
            return
        if memories:
            activity.set_belief(PAST_EXPERIENCE_KEY, list(memories))
            logger.info("Recalled %d past episodes for %s", len(memories), activity.id)

    def _complete(self, activity: Activity, outcome: str) -> None:
        activity.outcome = outcome
        activity.transition(ActivityStatus.COMPLETED)
        self._registry.deregister(activity.id)
        self._archive_completed(activity)
        self._emit(EventType.COMPLETED, activity_id=activity.id, outcome=outcome)

        # Reflection only feeds long-term memory.
        if self._config.reflect and self._memory is not None:
            self._spawn(self._reflect(activity))
        if self._config.audit_log:
            self._spawn(self._audit(activity))

    def _archive_completed(self, activity: Activity) -> None:
        limit = self._config.completed_archive_size
        if limit <= 0:
            return
        self._archive[activity.id] = activity
        while len(self._archive) > limit:
            self._archive.popitem(last=False)

    async def _reflect(self, activity: Activity) -> None:
        """Fire-and-forget: turn a finished activity into an episodic record."""
        if self._memory is None:
            return
        history = activity.history
        try:
            text = await self._collaborator.reflect(
                activity.goal,
                activity.outcome or OUTCOME_COMPLETED,
                render_history(history, len(history)),
            )
            if not text or not text.strip():
                return
            record = parse_reflection(
                activity.goal, activity.outcome or OUTCOME_COMPLETED, text
            )
            await self._memory.save(record)
        except Exception as e:
            logger.warning("Reflection failed for %s: %s", activity.id, e, exc_info=True)

    async def _audit(self, activity: Activity) -> None:
        try:
            await append_audit_record(self._config.audit_log, activity)  # type: ignore[arg-type]
        except Exception as e:
            logger.warning("Audit export failed for %s: %s", activity.id, e)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _sweep_parked(self) -> None:
        """Wake activities parked longer than ``park_timeout``."""
        timeout = self._config.park_timeout
        if timeout is None:
            return
        now = time.monotonic()
        for activity in self._registry.snapshot():
            parked_at = activity.parked_at
            if parked_at is None or now - parked_at < timeout:
                continue
            event = {
                "name": PARK_TIMEOUT_EVENT,
                "message": f"No event arrived within {timeout:g}s",
            }
            if activity.push_event_and_wake(event):
                logger.warning(
                    "Activity %s parked for over %gs, waking it", activity.id, timeout
                )
                self._emit(EventType.WOKEN, activity_id=activity.id, reason=PARK_TIMEOUT_EVENT)
                self.enqueue(activity)

    def _emit(self, type: EventType, **data: Any) -> None:
        if self._wire:
            self._wire.emit(type, **data)
