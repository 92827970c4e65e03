"""LLM provider abstraction — unified via litellm.

litellm handles provider-specific details (OpenAI, Anthropic, Ollama, ...)
and normalizes responses to the OpenAI shape. Collaborator calls are plain
request/response round trips, so nothing here streams.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from asyncagent.llm.message import Completion, ToolCall, system_message
from asyncagent.memory import Embedder

if TYPE_CHECKING:
    from litellm import EmbeddingResponse, ModelResponse

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (ConnectionError, TimeoutError, OSError)


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None


@runtime_checkable
class ChatProvider(Protocol):
    """Protocol for LLM providers."""

    @property
    def config(self) -> ProviderConfig: ...

    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        """Run one chat completion."""
        ...


@dataclass
class LiteLLMProvider:
    """Unified LLM provider using litellm.

    litellm detects the provider from the model string prefix
    (e.g. "openai/gpt-4o", "anthropic/claude-...") and reads API keys
    from environment variables automatically.
    """

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [system_message(system), *messages],
        }

        if tools:
            kwargs["tools"] = tools

        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature

        if self._config.max_tokens is not None:
            kwargs["max_tokens"] = self._config.max_tokens

        response = await _acompletion_with_retry(**kwargs)
        return _response_to_completion(response)


@retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> ModelResponse:
    """Call litellm.acompletion with retry on transient errors."""
    import litellm

    return await litellm.acompletion(**kwargs)


@retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _aembedding_with_retry(**kwargs: Any) -> EmbeddingResponse:
    """Call litellm.aembedding with retry on transient errors."""
    import litellm

    return await litellm.aembedding(**kwargs)


def _response_to_completion(response: Any) -> Completion:
    """Convert a litellm ModelResponse into a Completion.

    litellm responses have the OpenAI shape:
      response.choices[0].message.{content, tool_calls}, .finish_reason
    """
    choices = getattr(response, "choices", None)
    if not choices:
        return Completion()

    choice = choices[0]
    message = getattr(choice, "message", None)
    text = getattr(message, "content", None) or ""

    tool_calls: list[ToolCall] = []
    for tc in getattr(message, "tool_calls", None) or []:
        func = getattr(tc, "function", None)
        if func is None or not getattr(func, "name", None):
            continue
        tool_calls.append(
            ToolCall.from_raw(getattr(tc, "id", "") or "", func.name, func.arguments)
        )

    return Completion(
        text=text,
        tool_calls=tool_calls,
        finish_reason=getattr(choice, "finish_reason", None),
    )


def _embedding_vector(response: Any) -> list[float]:
    data = getattr(response, "data", None)
    if data is None and isinstance(response, dict):
        data = response.get("data")
    if not data:
        raise ValueError("embedding response contained no data")
    item = data[0]
    vector = item["embedding"] if isinstance(item, dict) else item.embedding
    return [float(x) for x in vector]


def litellm_embedder(model: str) -> Embedder:
    """An async text -> vector function backed by litellm."""

    async def _embed(text: str) -> list[float]:
        response = await _aembedding_with_retry(model=model, input=[text])
        return _embedding_vector(response)

    return _embed


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> ChatProvider:
    """Create a LiteLLM provider.

    Args:
        model: Model name with provider prefix (e.g. "openai/gpt-4o").
        temperature: Sampling temperature.
        max_tokens: Max output tokens.
    """
    config = ProviderConfig(model=model, temperature=temperature, max_tokens=max_tokens)
    return LiteLLMProvider(_config=config)
