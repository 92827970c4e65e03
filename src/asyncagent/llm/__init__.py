"""LLM abstraction layer — unified via litellm."""

from asyncagent.llm.message import Completion, ToolCall
from asyncagent.llm.provider import (
    ChatProvider,
    LiteLLMProvider,
    ProviderConfig,
    create_provider,
    litellm_embedder,
)

__all__ = [
    "ChatProvider",
    "Completion",
    "LiteLLMProvider",
    "ProviderConfig",
    "ToolCall",
    "create_provider",
    "litellm_embedder",
]
