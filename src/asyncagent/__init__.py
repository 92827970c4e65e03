"""Asynchronous, event-driven reason/act/observe agents."""

from asyncagent.activity import Activity, ActivityRegistry, ActivityStatus, Step
from asyncagent.agent import AsyncAgent, EventRouter, RouteOutcome, Scheduler
from asyncagent.brain import LiteLLMCollaborator, ReasoningCollaborator
from asyncagent.config import AgentConfig

__version__ = "0.1.0"

__all__ = [
    "Activity",
    "ActivityRegistry",
    "ActivityStatus",
    "AgentConfig",
    "AsyncAgent",
    "EventRouter",
    "LiteLLMCollaborator",
    "ReasoningCollaborator",
    "RouteOutcome",
    "Scheduler",
    "Step",
    "__version__",
]
