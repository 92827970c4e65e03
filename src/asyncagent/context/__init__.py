"""What each collaborator call gets to see.

The stored history is never truncated; only the slice rendered into a
collaborator call is windowed, so the payload stays bounded no matter how
many times an activity cycles.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from asyncagent.activity import PROGRESS_KEY, Activity, Step

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 5
NO_PLAN_TEXT = "(No plan yet. Create one in Observation phase.)"


@dataclass(frozen=True)
class PhaseContext:
    """Everything rendered for one collaborator call."""

    goal: str
    history: str
    beliefs: str
    progress: str


def render_history(steps: Sequence[Step], window: int = DEFAULT_WINDOW_SIZE) -> str:
    """Serialize the last ``window`` steps, one JSON document per line."""
    if window <= 0:
        return ""
    return "".join(step.to_json() + "\n" for step in steps[-window:])


def render_beliefs(activity: Activity) -> str:
    """JSON snapshot of the activity's beliefs, tagged with its id.

    The id rides along so tool calls can carry it as the correlation id
    for their later notifications.
    """
    payload = {"activityUuid": activity.id, "variables": activity.snapshot_beliefs()}
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        logger.debug("Failed to serialize beliefs for %s", activity.id, exc_info=True)
        return ""


def render_events(events: Sequence[Any]) -> str:
    try:
        return json.dumps(list(events), ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        logger.warning("Failed to serialize events", exc_info=True)
        return "[]"


def progress_text(activity: Activity) -> str:
    """The progress tracker, or a placeholder asking for a first plan."""
    progress = activity.get_belief(PROGRESS_KEY)
    if progress is None:
        return NO_PLAN_TEXT
    return progress if isinstance(progress, str) else json.dumps(progress)


def build_context(activity: Activity, window: int = DEFAULT_WINDOW_SIZE) -> PhaseContext:
    return PhaseContext(
        goal=activity.goal,
        history=render_history(activity.history, window),
        beliefs=render_beliefs(activity),
        progress=progress_text(activity),
    )


__all__ = [
    "DEFAULT_WINDOW_SIZE",
    "NO_PLAN_TEXT",
    "PhaseContext",
    "build_context",
    "progress_text",
    "render_beliefs",
    "render_events",
    "render_history",
]
