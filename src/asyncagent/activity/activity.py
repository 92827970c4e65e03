"""The unit of asynchronous goal-directed work."""

from __future__ import annotations

import copy
import enum
import logging
import threading
import time
import uuid
from typing import Any

from asyncagent.activity.step import Step
from asyncagent.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

PROGRESS_KEY = "goal_progress"
PAST_EXPERIENCE_KEY = "past_experience"


class ActivityStatus(enum.Enum):
    """Where an activity sits in the decide -> act -> observe cycle."""

    REASONING = "reasoning"
    ACTION = "action"
    WAITING_FOR_EVENT = "waiting_for_event"
    OBSERVATION = "observation"
    COMPLETED = "completed"


# REASONING -> OBSERVATION is the preemption edge: buffered events take
# priority over further planning.
ALLOWED_TRANSITIONS: dict[ActivityStatus, frozenset[ActivityStatus]] = {
    ActivityStatus.REASONING: frozenset(
        {ActivityStatus.ACTION, ActivityStatus.OBSERVATION}
    ),
    ActivityStatus.ACTION: frozenset(
        {ActivityStatus.OBSERVATION, ActivityStatus.WAITING_FOR_EVENT}
    ),
    ActivityStatus.WAITING_FOR_EVENT: frozenset({ActivityStatus.OBSERVATION}),
    ActivityStatus.OBSERVATION: frozenset(
        {ActivityStatus.REASONING, ActivityStatus.COMPLETED}
    ),
    ActivityStatus.COMPLETED: frozenset(),
}


class Activity:
    """One activity: goal, status, beliefs, pending events, history.

    The scheduler owns ``status`` and ``history``; the router writes
    ``beliefs`` and the pending-event buffer. All shared state sits behind
    a per-activity lock so the router may run on another thread.

    New activities start in OBSERVATION: the first pass has to build a
    plan before any reasoning happens.
    """

    def __init__(self, goal: str, activity_id: str | None = None) -> None:
        self.id: str = activity_id or str(uuid.uuid4())
        self._goal = goal
        self._status = ActivityStatus.OBSERVATION
        self._beliefs: dict[str, Any] = {}
        self._events: list[Any] = []
        self._history: list[Step] = []
        self._lock = threading.Lock()
        self.created_at: float = time.time()
        self.parked_at: float | None = None  # monotonic clock
        self.cycles: int = 0
        self.outcome: str | None = None

    def __repr__(self) -> str:
        return f"Activity(id={self.id!r}, status={self.status.name})"

    @property
    def goal(self) -> str:
        return self._goal

    # --- Status ---

    @property
    def status(self) -> ActivityStatus:
        with self._lock:
            return self._status

    @property
    def is_completed(self) -> bool:
        return self.status is ActivityStatus.COMPLETED

    def transition(self, target: ActivityStatus) -> None:
        """Move to ``target``, rejecting anything outside the allowed edges."""
        with self._lock:
            self._set_status(target)

    def park_unless_events(self) -> bool:
        """ACTION -> WAITING_FOR_EVENT, or -> OBSERVATION if events are buffered.

        Checked and applied under the lock, so an event pushed concurrently
        is either seen here or sees the parked status in
        :meth:`push_event_and_wake`. Returns True if the activity parked.
        """
        with self._lock:
            if self._events:
                self._set_status(ActivityStatus.OBSERVATION)
                return False
            self._set_status(ActivityStatus.WAITING_FOR_EVENT)
            return True

    def push_event_and_wake(self, event: Any) -> bool:
        """Buffer an event; flip WAITING_FOR_EVENT -> OBSERVATION if parked.

        Returns True if this call woke the activity (the caller must then
        put it back on the ready queue).
        """
        with self._lock:
            self._events.append(event)
            if self._status is ActivityStatus.WAITING_FOR_EVENT:
                self._set_status(ActivityStatus.OBSERVATION)
                return True
            return False

    def _set_status(self, target: ActivityStatus) -> None:
        # Caller holds self._lock.
        if target not in ALLOWED_TRANSITIONS[self._status]:
            raise InvalidTransitionError(self.id, self._status.name, target.name)
        logger.debug("Activity %s: %s -> %s", self.id, self._status.name, target.name)
        self._status = target
        if target is ActivityStatus.WAITING_FOR_EVENT:
            self.parked_at = time.monotonic()
        else:
            self.parked_at = None

    # --- Pending events ---

    def push_event(self, event: Any) -> None:
        """Append an event to the pending buffer (no dedup, no bound)."""
        with self._lock:
            self._events.append(event)

    def consume_events(self) -> list[Any]:
        """Drain and return all buffered events."""
        with self._lock:
            drained = self._events
            self._events = []
        return drained

    def has_events(self) -> bool:
        with self._lock:
            return bool(self._events)

    # --- Beliefs ---

    def set_belief(self, key: str, value: Any) -> None:
        """Upsert a belief. ``None`` values are ignored (no tombstones)."""
        if value is None:
            return
        with self._lock:
            self._beliefs[key] = value

    def get_belief(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._beliefs.get(key, default)

    def snapshot_beliefs(self) -> dict[str, Any]:
        """Point-in-time deep copy of the belief map."""
        with self._lock:
            return copy.deepcopy(self._beliefs)

    # --- History ---

    def add_step(self, step: Step) -> None:
        with self._lock:
            self._history.append(step)

    @property
    def history(self) -> list[Step]:
        """Copy of the full history (steps themselves are immutable)."""
        with self._lock:
            return list(self._history)

    def last_step(self) -> Step | None:
        with self._lock:
            return self._history[-1] if self._history else None

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "uuid": self.id,
                "goal": self._goal,
                "status": self._status.name,
                "variables": copy.deepcopy(self._beliefs),
                "pending_events": len(self._events),
                "cycles": self.cycles,
                "outcome": self.outcome,
                "history": [s.to_dict() for s in self._history],
            }
