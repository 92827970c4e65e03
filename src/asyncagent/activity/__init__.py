"""Activities: state machine, history steps, registry."""

from asyncagent.activity.activity import (
    ALLOWED_TRANSITIONS,
    PAST_EXPERIENCE_KEY,
    PROGRESS_KEY,
    Activity,
    ActivityStatus,
)
from asyncagent.activity.registry import ActivityRegistry
from asyncagent.activity.step import Step

__all__ = [
    "ALLOWED_TRANSITIONS",
    "PAST_EXPERIENCE_KEY",
    "PROGRESS_KEY",
    "Activity",
    "ActivityStatus",
    "ActivityRegistry",
    "Step",
]
