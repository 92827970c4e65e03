"""The default, litellm-backed reasoning collaborator."""

from __future__ import annotations

import json
import logging

from asyncagent.brain.prompts import (
    ACT_PROMPT,
    OBSERVE_PROMPT,
    REASON_PROMPT,
    REFLECT_PROMPT,
    SYSTEM_PROMPT,
)
from asyncagent.llm.message import user_message
from asyncagent.llm.provider import ChatProvider
from asyncagent.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)


class LiteLLMCollaborator:
    """Implements reason/act/observe/reflect with one chat completion each.

    In ``act`` the registered tools are offered to the model. Tool calls are
    dispatched right away (they only start side effects) and the result is
    reported as ``{"tool_name": ..., "summary": ...}`` so the scheduler
    knows to wait for the matching event.
    """

    def __init__(
        self,
        provider: ChatProvider,
        tools: ToolRegistry | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._provider = provider
        self._tools = tools if tools is not None else ToolRegistry()
        self._system_prompt = system_prompt

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    async def reason(self, goal: str, history: str, beliefs: str, progress: str) -> str:
        prompt = REASON_PROMPT.format(
            goal=goal, progress=progress, context=beliefs, history=history
        )
        return await self._ask(prompt)

    async def act(self, goal: str, history: str, beliefs: str, progress: str) -> str:
        prompt = ACT_PROMPT.format(
            goal=goal, progress=progress, context=beliefs, history=history
        )
        completion = await self._provider.complete(
            self._system_prompt, [user_message(prompt)], tools=self._tools.specs()
        )

        if not completion.has_tool_calls:
            return completion.text

        start = await self._tools.start(
            completion.tool_calls, activity_id=_activity_id(beliefs)
        )
        return start.to_act_result(completion.text)

    async def observe(
        self, goal: str, history: str, beliefs: str, events: str, progress: str
    ) -> str:
        prompt = OBSERVE_PROMPT.format(
            goal=goal, progress=progress, events=events, context=beliefs, history=history
        )
        return await self._ask(prompt)

    async def reflect(self, goal: str, final_status: str, full_history: str) -> str:
        prompt = REFLECT_PROMPT.format(
            goal=goal, final_status=final_status, history=full_history
        )
        return await self._ask(prompt)

    async def _ask(self, prompt: str) -> str:
        completion = await self._provider.complete(
            self._system_prompt, [user_message(prompt)]
        )
        return completion.text


def _activity_id(beliefs: str) -> str | None:
    """Pull ``activityUuid`` out of the rendered beliefs, if present."""
    try:
        payload = json.loads(beliefs)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    value = payload.get("activityUuid")
    return value if isinstance(value, str) else None
