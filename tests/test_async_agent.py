"""Tests for asyncagent.agent.async_agent (submission facade, lifecycle)."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from asyncagent.activity import ActivityStatus
from asyncagent.agent import AsyncAgent
from asyncagent.agent.router import RouteOutcome
from asyncagent.config import AgentConfig, SchedulerConfig
from asyncagent.memory import EpisodicRecord
from asyncagent.session.wire import EventType, Wire


class TimerCollaborator:
    """Plans once, starts a 'timer', and completes when its event arrives."""

    def __init__(self) -> None:
        self.reflected: list[str] = []

    async def reason(self, goal: str, history: str, beliefs: str, progress: str) -> str:
        return "start the timer"

    async def act(self, goal: str, history: str, beliefs: str, progress: str) -> str:
        return json.dumps({"tool_name": "timer", "summary": "started"})

    async def observe(
        self, goal: str, history: str, beliefs: str, events: str, progress: str
    ) -> str:
        if any(e.get("name") == "timer.finished" for e in json.loads(events)):
            return '{"completed": true, "summary": "timer fired"}'
        return '{"completed": false, "new_progress": "1 [ ] start timer"}'

    async def reflect(self, goal: str, final_status: str, full_history: str) -> str:
        self.reflected.append(goal)
        return '{"summary": "started a timer and waited", "procedure": ["timer"]}'


class RecordingMemory:
    def __init__(self) -> None:
        self.saved: list[EpisodicRecord] = []

    async def save(self, record: EpisodicRecord) -> None:
        self.saved.append(record)

    async def retrieve_top_k(self, query: str, k: int) -> list[str]:
        return []


def _config(**scheduler: Any) -> AgentConfig:
    scheduler.setdefault("poll_interval", 0.01)
    return AgentConfig(scheduler=SchedulerConfig(**scheduler))


async def _until(predicate: Any, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmit:
    def test_submit_registers_and_enqueues(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        agent = AsyncAgent(TimerCollaborator(), _config(), wire=wire)
        activity_id = agent.submit("set a timer")

        activity = agent.get(activity_id)
        assert activity is not None
        assert activity.status is ActivityStatus.OBSERVATION
        assert activity_id in agent.registry
        assert activity_id in agent.scheduler.queue
        event = q.get_nowait()
        assert event is not None and event.type == EventType.SUBMITTED
        assert event.data["goal"] == "set a timer"

    @pytest.mark.parametrize("goal", ["", "   ", "\n"])
    def test_blank_goal_rejected(self, goal: str) -> None:
        agent = AsyncAgent(TimerCollaborator(), _config())
        with pytest.raises(ValueError):
            agent.submit(goal)
        assert len(agent.registry) == 0

    def test_get_unknown(self) -> None:
        assert AsyncAgent(TimerCollaborator(), _config()).get("nope") is None


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_event_driven_completion(self) -> None:
        collaborator = TimerCollaborator()
        memory = RecordingMemory()
        async with AsyncAgent(
            collaborator, _config(), memory=memory
        ) as agent:
            activity_id = agent.submit("set a timer")
            await _until(
                lambda: agent.get(activity_id).status is ActivityStatus.WAITING_FOR_EVENT
            )

            outcome = agent.route(
                {"kind": "event", "correlationId": activity_id, "payload": {"name": "timer.finished"}}
            )
            assert outcome is RouteOutcome.WOKE_ACTIVITY
            assert await agent.wait_idle(timeout=2.0)

        activity = agent.get(activity_id)
        assert activity is not None
        assert activity.is_completed
        assert activity_id not in agent.registry
        assert [s.phase for s in activity.history] == ["observe", "reason", "act", "observe"]
        # stop() waits for reflection.
        assert collaborator.reflected == ["set a timer"]
        assert memory.saved[0].summary == "started a timer and waited"

    async def test_concurrent_activities_are_isolated(self) -> None:
        async with AsyncAgent(TimerCollaborator(), _config(reflect=False)) as agent:
            a = agent.submit("timer A")
            b = agent.submit("timer B")
            await _until(
                lambda: all(
                    agent.get(i).status is ActivityStatus.WAITING_FOR_EVENT for i in (a, b)
                )
            )

            agent.route({"kind": "belief", "correlationId": a, "payload": {"key": "k", "value": 42}})
            agent.route({"kind": "event", "correlationId": a, "payload": {"name": "timer.finished"}})
            await _until(lambda: agent.get(a).is_completed)

            assert agent.get(b).status is ActivityStatus.WAITING_FOR_EVENT
            assert agent.get(b).get_belief("k") is None
            assert agent.get(a).history[-1].beliefs["k"] == 42
            assert not await agent.wait_idle(timeout=0.05)

    async def test_wait_idle_times_out_while_parked(self) -> None:
        async with AsyncAgent(TimerCollaborator(), _config(reflect=False)) as agent:
            agent.submit("never finishes")
            assert await agent.wait_idle(timeout=0.1) is False

    async def test_park_timeout_unblocks(self) -> None:
        async with AsyncAgent(
            TimerCollaborator(), _config(reflect=False, park_timeout=0.05, max_cycles=1)
        ) as agent:
            activity_id = agent.submit("wait for nothing")
            assert await agent.wait_idle(timeout=2.0)

        activity = agent.get(activity_id)
        assert activity is not None
        assert activity.outcome == "ABANDONED"

    async def test_start_stop_idempotent(self) -> None:
        agent = AsyncAgent(TimerCollaborator(), _config())
        await agent.start()
        await agent.start()
        assert agent.running
        await agent.stop()
        assert not agent.running
        await agent.stop()

    async def test_immediate_stop(self) -> None:
        agent = AsyncAgent(TimerCollaborator(), _config())
        await agent.start()
        await asyncio.wait_for(agent.stop(), timeout=1.0)
