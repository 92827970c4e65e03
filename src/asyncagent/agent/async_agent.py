"""AsyncAgent — submission facade over the registry, scheduler and router."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from types import TracebackType
from typing import Any

from asyncagent.activity import Activity, ActivityRegistry
from asyncagent.agent.router import EventRouter, RouteOutcome
from asyncagent.agent.scheduler import Scheduler
from asyncagent.brain.protocol import ReasoningCollaborator
from asyncagent.config import AgentConfig
from asyncagent.memory import MemoryStore
from asyncagent.session.wire import EventType, Wire
from asyncagent.transport.sse import SSEListener

logger = logging.getLogger(__name__)


class AsyncAgent:
    """Runs many activities concurrently on one worker.

    Usage::

        async with AsyncAgent(collaborator) as agent:
            activity_id = agent.submit("Set a 5 second timer")
            await agent.wait_idle(timeout=60)
            print(agent.get(activity_id).to_dict())
    """

    def __init__(
        self,
        collaborator: ReasoningCollaborator,
        config: AgentConfig | None = None,
        memory: MemoryStore | None = None,
        wire: Wire | None = None,
    ) -> None:
        self._config = config or AgentConfig()
        self._wire = wire
        self.registry = ActivityRegistry()
        self.scheduler = Scheduler(
            collaborator,
            self.registry,
            config=self._config.scheduler,
            memory=memory,
            wire=wire,
        )
        self.router = EventRouter(self.registry, self.scheduler, wire=wire)
        self._worker: asyncio.Task[None] | None = None
        self._listener: asyncio.Task[int] | None = None

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the worker (and the SSE listener when ``sse_url`` is set)."""
        if self.running:
            return
        self.router.attach_loop()
        self._worker = asyncio.create_task(self.scheduler.run(), name="asyncagent-worker")
        # Let the worker raise its running flag so an early stop() is not lost.
        await asyncio.sleep(0)

        transport = self._config.transport
        if transport.sse_url:
            listener = SSEListener(
                transport.sse_url, self.router, attempts=transport.reconnect_attempts
            )
            self._listener = asyncio.create_task(
                self._listen(listener), name="asyncagent-sse"
            )

    async def stop(self) -> None:
        """Stop after the in-flight phase, then wait for pending reflections."""
        self.scheduler.stop()
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._worker is not None:
            await self._worker
            self._worker = None
        await self.scheduler.drain()

    async def _listen(self, listener: SSEListener) -> int:
        try:
            return await listener.run()
        except Exception as e:
            logger.error("SSE listener for %s gave up: %s", listener.url, e)
            if self._wire:
                self._wire.send_error(f"SSE listener failed: {e}")
            return 0

    async def __aenter__(self) -> AsyncAgent:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # --- Submission and queries ---

    def submit(self, goal: str) -> str:
        """Create an activity for ``goal`` and queue it. Returns its id."""
        if not goal or not goal.strip():
            raise ValueError("goal must not be blank")

        activity = Activity(goal)
        self.registry.register(activity)
        self.scheduler.enqueue(activity)
        logger.info("Submitted activity %s: %s", activity.id, goal)
        if self._wire:
            self._wire.emit(EventType.SUBMITTED, activity_id=activity.id, goal=goal)
        return activity.id

    def get(self, activity_id: str) -> Activity | None:
        """A live activity, or a recently completed one from the archive."""
        return self.registry.get(activity_id) or self.scheduler.completed(activity_id)

    def route(self, message: str | bytes | Mapping[str, Any]) -> RouteOutcome:
        return self.router.route(message)

    async def wait_idle(self, timeout: float | None = None, interval: float = 0.05) -> bool:
        """Wait until no live activity remains.

        Returns False if ``timeout`` elapsed first. Activities parked on an
        event that never comes keep the agent busy.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while len(self.registry) > 0:
            if deadline is not None and time.monotonic() >= deadline:
                return False
            await asyncio.sleep(interval)
        return True
