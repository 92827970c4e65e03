"""Message helpers for the LLM layer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A complete tool call extracted from a model response."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, tc_id: str, name: str, arguments: str | dict | None) -> ToolCall:
        """Build from the provider's raw form; arguments arrive as a JSON string."""
        if isinstance(arguments, dict):
            return cls(id=tc_id, name=name, arguments=arguments)
        try:
            args = json.loads(arguments) if arguments else {}
        except json.JSONDecodeError:
            logger.warning(
                "Failed to parse tool call arguments for %s: %s",
                name,
                arguments[:200] if arguments else arguments,
            )
            args = {}
        if not isinstance(args, dict):
            args = {}
        return cls(id=tc_id, name=name, arguments=args)


@dataclass
class Completion:
    """One non-streamed model response."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


def system_message(text: str) -> dict[str, Any]:
    return {"role": "system", "content": text}


def user_message(text: str) -> dict[str, Any]:
    return {"role": "user", "content": text}
