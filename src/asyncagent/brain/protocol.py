"""The reasoning collaborator contract."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReasoningCollaborator(Protocol):
    """The four operations the scheduler drives.

    Each call is a request/response round trip awaited by the scheduler's
    single worker. Implementations may raise or return malformed text; the
    scheduler treats a failure as an empty result and parses leniently.

    Arguments are pre-rendered text: ``history`` is one JSON step per line,
    ``beliefs`` a JSON object, ``events`` a JSON array, ``progress`` the
    progress tracker.
    """

    async def reason(self, goal: str, history: str, beliefs: str, progress: str) -> str:
        """Decide the next step. Plain text, no tool use."""
        ...

    async def act(self, goal: str, history: str, beliefs: str, progress: str) -> str:
        """Perform the next step. Returns ``{"tool_name": str | null, "summary": str}``."""
        ...

    async def observe(
        self, goal: str, history: str, beliefs: str, events: str, progress: str
    ) -> str:
        """Interpret results and events.

        Returns ``{"completed": bool, "summary": str, "new_progress": str,
        "update_variables": {...}}``.
        """
        ...

    async def reflect(self, goal: str, final_status: str, full_history: str) -> str:
        """Summarize a finished activity as ``{"summary": str, "procedure": [str]}``."""
        ...
