"""Exception types shared across asyncagent.

None of these are fatal to the scheduler. They are raised at the seams
where a failure is detected and caught (and logged) where the worker or
router decides on the conservative fallback.
"""

from __future__ import annotations


class AsyncAgentError(Exception):
    """Base class for all asyncagent errors."""


class CollaboratorInvocationError(AsyncAgentError):
    """A reason/act/observe/reflect call failed outright."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Collaborator '{operation}' failed: {cause}")


class MalformedResponseError(AsyncAgentError):
    """Collaborator text was not parseable where structure was expected."""

    def __init__(self, reason: str, raw: str) -> None:
        self.reason = reason
        self.raw = raw
        super().__init__(f"{reason}: {raw[:200]!r}")


class RoutingError(AsyncAgentError):
    """An inbound message could not be delivered to an activity."""

    def __init__(self, reason: str, correlation_id: str | None = None) -> None:
        self.reason = reason
        self.correlation_id = correlation_id
        super().__init__(f"{reason} (correlation_id={correlation_id})")


class InvalidTransitionError(AsyncAgentError):
    """Attempted a status change outside the allowed edges."""

    def __init__(self, activity_id: str, current: object, target: object) -> None:
        self.activity_id = activity_id
        self.current = current
        self.target = target
        super().__init__(
            f"Activity {activity_id}: illegal transition {current} -> {target}"
        )


class DuplicateActivityError(AsyncAgentError):
    """An activity id is already registered."""
