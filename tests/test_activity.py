"""Tests for asyncagent.activity (Activity, Step, ActivityRegistry)."""

from __future__ import annotations

import json
import threading

import pytest

from asyncagent.activity import (
    ALLOWED_TRANSITIONS,
    PROGRESS_KEY,
    Activity,
    ActivityRegistry,
    ActivityStatus,
    Step,
)
from asyncagent.errors import DuplicateActivityError, InvalidTransitionError


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_initial_status_is_observation(self) -> None:
        activity = Activity("ping")
        assert activity.status is ActivityStatus.OBSERVATION
        assert not activity.is_completed

    def test_ids_are_unique(self) -> None:
        assert Activity("a").id != Activity("a").id

    def test_explicit_id(self) -> None:
        assert Activity("a", activity_id="X").id == "X"

    def test_full_cycle(self) -> None:
        activity = Activity("goal")
        activity.transition(ActivityStatus.REASONING)
        activity.transition(ActivityStatus.ACTION)
        activity.transition(ActivityStatus.WAITING_FOR_EVENT)
        activity.transition(ActivityStatus.OBSERVATION)
        activity.transition(ActivityStatus.COMPLETED)
        assert activity.is_completed

    def test_action_straight_to_observation(self) -> None:
        activity = Activity("goal")
        activity.transition(ActivityStatus.REASONING)
        activity.transition(ActivityStatus.ACTION)
        activity.transition(ActivityStatus.OBSERVATION)
        assert activity.status is ActivityStatus.OBSERVATION

    def test_reasoning_can_yield_to_observation(self) -> None:
        activity = Activity("goal")
        activity.transition(ActivityStatus.REASONING)
        activity.transition(ActivityStatus.OBSERVATION)
        assert activity.status is ActivityStatus.OBSERVATION

    @pytest.mark.parametrize(
        "path",
        [
            [ActivityStatus.ACTION],
            [ActivityStatus.WAITING_FOR_EVENT],
            [ActivityStatus.REASONING, ActivityStatus.COMPLETED],
            [ActivityStatus.REASONING, ActivityStatus.WAITING_FOR_EVENT],
            [ActivityStatus.REASONING, ActivityStatus.ACTION, ActivityStatus.REASONING],
        ],
    )
    def test_illegal_edges_raise(self, path: list[ActivityStatus]) -> None:
        activity = Activity("goal")
        with pytest.raises(InvalidTransitionError):
            for status in path:
                activity.transition(status)

    def test_rejected_transition_leaves_status_unchanged(self) -> None:
        activity = Activity("goal")
        with pytest.raises(InvalidTransitionError):
            activity.transition(ActivityStatus.ACTION)
        assert activity.status is ActivityStatus.OBSERVATION

    def test_completed_is_terminal(self) -> None:
        activity = Activity("goal")
        activity.transition(ActivityStatus.COMPLETED)
        for status in ActivityStatus:
            with pytest.raises(InvalidTransitionError):
                activity.transition(status)

    def test_transition_table_covers_every_status(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(ActivityStatus)
        assert ALLOWED_TRANSITIONS[ActivityStatus.COMPLETED] == frozenset()

    def test_parked_at_tracks_waiting(self) -> None:
        activity = Activity("goal")
        activity.transition(ActivityStatus.REASONING)
        activity.transition(ActivityStatus.ACTION)
        assert activity.parked_at is None
        activity.transition(ActivityStatus.WAITING_FOR_EVENT)
        assert activity.parked_at is not None
        activity.transition(ActivityStatus.OBSERVATION)
        assert activity.parked_at is None


def _in_action() -> Activity:
    activity = Activity("goal")
    activity.transition(ActivityStatus.REASONING)
    activity.transition(ActivityStatus.ACTION)
    return activity


class TestParkAndWake:
    def test_park_without_events(self) -> None:
        activity = _in_action()
        assert activity.park_unless_events() is True
        assert activity.status is ActivityStatus.WAITING_FOR_EVENT

    def test_park_with_buffered_event_goes_to_observation(self) -> None:
        activity = _in_action()
        activity.push_event({"name": "timer.finished"})
        assert activity.park_unless_events() is False
        assert activity.status is ActivityStatus.OBSERVATION
        assert activity.has_events()

    def test_push_wakes_parked_activity(self) -> None:
        activity = _in_action()
        activity.park_unless_events()
        assert activity.push_event_and_wake({"n": 1}) is True
        assert activity.status is ActivityStatus.OBSERVATION

    def test_push_does_not_wake_running_activity(self) -> None:
        activity = _in_action()
        assert activity.push_event_and_wake({"n": 1}) is False
        assert activity.status is ActivityStatus.ACTION
        assert activity.has_events()

    def test_second_push_after_wake_only_buffers(self) -> None:
        activity = _in_action()
        activity.park_unless_events()
        assert activity.push_event_and_wake({"n": 1}) is True
        assert activity.push_event_and_wake({"n": 2}) is False
        assert activity.consume_events() == [{"n": 1}, {"n": 2}]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class TestEvents:
    def test_consume_drains_exactly_once(self) -> None:
        activity = Activity("goal")
        activity.push_event({"a": 1})
        assert activity.consume_events() == [{"a": 1}]
        assert activity.consume_events() == []

    def test_no_dedup(self) -> None:
        activity = Activity("goal")
        activity.push_event("same")
        activity.push_event("same")
        assert activity.consume_events() == ["same", "same"]

    def test_has_events_does_not_consume(self) -> None:
        activity = Activity("goal")
        assert not activity.has_events()
        activity.push_event(1)
        assert activity.has_events()
        assert activity.has_events()
        assert activity.consume_events() == [1]

    def test_concurrent_pushes_are_not_lost(self) -> None:
        activity = Activity("goal")

        def producer(base: int) -> None:
            for i in range(200):
                activity.push_event(base + i)

        threads = [threading.Thread(target=producer, args=(n * 1000,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(activity.consume_events()) == 800


# ---------------------------------------------------------------------------
# Beliefs
# ---------------------------------------------------------------------------


class TestBeliefs:
    def test_set_and_get(self) -> None:
        activity = Activity("goal")
        activity.set_belief("k", 42)
        assert activity.get_belief("k") == 42

    def test_upsert(self) -> None:
        activity = Activity("goal")
        activity.set_belief("k", 1)
        activity.set_belief("k", 2)
        assert activity.get_belief("k") == 2

    def test_none_is_ignored(self) -> None:
        activity = Activity("goal")
        activity.set_belief("k", 1)
        activity.set_belief("k", None)
        assert activity.get_belief("k") == 1
        activity.set_belief("other", None)
        assert activity.get_belief("other", "missing") == "missing"

    def test_snapshot_is_isolated(self) -> None:
        activity = Activity("goal")
        activity.set_belief("nested", {"a": [1]})
        snapshot = activity.snapshot_beliefs()
        snapshot["nested"]["a"].append(2)
        activity.set_belief("new", True)
        assert activity.get_belief("nested") == {"a": [1]}
        assert "new" not in snapshot


# ---------------------------------------------------------------------------
# History and Step
# ---------------------------------------------------------------------------


class TestHistory:
    def test_history_is_append_only(self) -> None:
        activity = Activity("goal")
        lengths = []
        for phase in ("observe", "reason", "act", "observe"):
            activity.add_step(Step(phase, "goal", "result"))
            lengths.append(len(activity.history))
        assert lengths == [1, 2, 3, 4]
        assert activity.last_step().phase == "observe"

    def test_history_returns_copy(self) -> None:
        activity = Activity("goal")
        activity.add_step(Step("reason", "goal", "r"))
        activity.history.clear()
        assert len(activity.history) == 1

    def test_last_step_empty(self) -> None:
        assert Activity("goal").last_step() is None

    def test_step_freezes_beliefs(self) -> None:
        beliefs = {"k": [1]}
        step = Step("observe", "goal", "r", beliefs, ({"e": 1},))
        beliefs["k"].append(2)
        beliefs["x"] = 1
        assert step.beliefs == {"k": [1]}
        with pytest.raises(TypeError):
            step.beliefs["y"] = 2  # type: ignore[index]

    def test_step_to_json_escapes(self) -> None:
        step = Step("act", 'say "hi"\n', "line1\nline2", {"q": 'a"b'})
        decoded = json.loads(step.to_json())
        assert decoded["input"] == 'say "hi"\n'
        assert decoded["result"] == "line1\nline2"
        assert decoded["beliefs"] == {"q": 'a"b'}
        assert decoded["phase"] == "act"
        assert "T" in decoded["timestamp"]

    def test_to_dict(self) -> None:
        activity = Activity("goal", activity_id="A")
        activity.set_belief(PROGRESS_KEY, "1 [ ] step")
        activity.push_event({"e": 1})
        activity.add_step(Step("observe", "goal", "{}"))
        data = activity.to_dict()
        assert data["uuid"] == "A"
        assert data["goal"] == "goal"
        assert data["status"] == "OBSERVATION"
        assert data["variables"] == {PROGRESS_KEY: "1 [ ] step"}
        assert data["pending_events"] == 1
        assert data["outcome"] is None
        assert len(data["history"]) == 1


# ---------------------------------------------------------------------------
# ActivityRegistry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_register_and_get(self) -> None:
        registry = ActivityRegistry()
        activity = Activity("goal")
        registry.register(activity)
        assert registry.get(activity.id) is activity
        assert activity.id in registry
        assert len(registry) == 1
        assert registry.ids() == [activity.id]

    def test_get_unknown_or_none(self) -> None:
        registry = ActivityRegistry()
        assert registry.get("nope") is None
        assert registry.get(None) is None

    def test_duplicate_id_rejected(self) -> None:
        registry = ActivityRegistry()
        registry.register(Activity("a", activity_id="X"))
        with pytest.raises(DuplicateActivityError):
            registry.register(Activity("b", activity_id="X"))

    def test_deregister_exactly_once(self) -> None:
        registry = ActivityRegistry()
        activity = Activity("goal")
        registry.register(activity)
        assert registry.deregister(activity.id) is True
        assert registry.deregister(activity.id) is False
        assert activity.id not in registry

    def test_snapshot_is_a_copy(self) -> None:
        registry = ActivityRegistry()
        registry.register(Activity("a"))
        snapshot = registry.snapshot()
        registry.register(Activity("b"))
        assert len(snapshot) == 1
        assert len(registry.snapshot()) == 2
