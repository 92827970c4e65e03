"""Agent runtime: scheduler, router, parsing and the submission facade."""

from asyncagent.agent.async_agent import AsyncAgent
from asyncagent.agent.router import Envelope, EventRouter, RouteOutcome
from asyncagent.agent.scheduler import (
    OUTCOME_ABANDONED,
    OUTCOME_COMPLETED,
    ReadyQueue,
    Scheduler,
)

__all__ = [
    "AsyncAgent",
    "Envelope",
    "EventRouter",
    "OUTCOME_ABANDONED",
    "OUTCOME_COMPLETED",
    "ReadyQueue",
    "RouteOutcome",
    "Scheduler",
]
