"""Side-effect tools offered to the collaborator in the ACT phase.

An ACT turn starts at most one tool. The tool only kicks off the side
effect; its outcome comes back later as a routed event correlated by the
activity id, so the registry fills that id in when the model forgets it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from asyncagent.llm.message import ToolCall
from asyncagent.tool.base import BaseTool

logger = logging.getLogger(__name__)

CORRELATION_PARAM = "uuid"


@dataclass(frozen=True)
class ToolStart:
    """What happened when an ACT turn asked for a tool."""

    tool_name: str | None
    content: str
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def started(self) -> bool:
        return self.tool_name is not None

    def to_act_result(self, summary: str | None = None) -> str:
        """Render as the ``{"tool_name": ..., "summary": ...}`` ACT result.

        A tool that failed to start reports ``tool_name: null`` so the
        activity does not park waiting for an event that will never come.
        """
        if not self.started:
            return json.dumps({"tool_name": None, "summary": self.content})
        return json.dumps(
            {
                "tool_name": self.tool_name,
                "arguments": self.arguments,
                "summary": summary or self.content,
            }
        )


class ToolRegistry:
    """Tools an activity may start, keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.warning("Tool %s already registered, overwriting", tool.name)
        self._tools[tool.name] = tool

    def specs(self) -> list[dict[str, Any]] | None:
        """OpenAI tool specs, or None when there is nothing to offer."""
        if not self._tools:
            return None
        return [t.to_openai_spec() for t in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools.keys())

    async def start(
        self, tool_calls: list[ToolCall], activity_id: str | None = None
    ) -> ToolStart:
        """Start the first requested tool; later calls in the turn are ignored."""
        if not tool_calls:
            return ToolStart(tool_name=None, content="No tool requested")

        tool_call = tool_calls[0]
        if len(tool_calls) > 1:
            logger.warning(
                "Model requested %d tool calls, starting only %s",
                len(tool_calls),
                tool_call.name,
            )

        tool = self._tools.get(tool_call.name)
        if tool is None:
            return ToolStart(
                tool_name=None,
                content=(
                    f"Tool {tool_call.name} failed: Unknown tool: {tool_call.name}. "
                    f"Available tools: {', '.join(self.names())}"
                ),
            )

        arguments = dict(tool_call.arguments)
        if (
            activity_id
            and CORRELATION_PARAM in tool.param_model.model_fields
            and not arguments.get(CORRELATION_PARAM)
        ):
            arguments[CORRELATION_PARAM] = activity_id

        content, is_error = await tool(arguments)
        logger.info(
            "Tool %s started (%s): %s",
            tool_call.name,
            "error" if is_error else "ok",
            content[:200],
        )
        if is_error:
            return ToolStart(
                tool_name=None, content=f"Tool {tool_call.name} failed: {content}"
            )
        return ToolStart(tool_name=tool_call.name, content=content, arguments=arguments)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
