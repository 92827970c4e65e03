"""Tests for asyncagent.llm (retry logic, response conversion, embeddings)."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from asyncagent.llm.message import Completion, ToolCall, user_message
from asyncagent.llm.provider import (
    LiteLLMProvider,
    ProviderConfig,
    _acompletion_with_retry,
    _aembedding_with_retry,
    _embedding_vector,
    _response_to_completion,
    create_provider,
    litellm_embedder,
)


def _response(
    content: str | None = "hi",
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def _tool_call(name: str, arguments: str, tc_id: str = "call_1") -> SimpleNamespace:
    return SimpleNamespace(id=tc_id, function=SimpleNamespace(name=name, arguments=arguments))


# ---------------------------------------------------------------------------
# ProviderConfig / create_provider
# ---------------------------------------------------------------------------


class TestCreateProvider:
    def test_defaults(self) -> None:
        config = ProviderConfig(model="test/model")
        assert config.temperature is None
        assert config.max_tokens is None

    def test_config_propagated(self) -> None:
        provider = create_provider("openai/gpt-4o-mini", temperature=0.2, max_tokens=512)
        assert isinstance(provider, LiteLLMProvider)
        assert provider.config.model == "openai/gpt-4o-mini"
        assert provider.config.temperature == 0.2
        assert provider.config.max_tokens == 512


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestRetryLogic:
    async def test_success_on_first_try(self) -> None:
        mock_acompletion = AsyncMock(return_value="ok")
        with patch("litellm.acompletion", mock_acompletion):
            assert await _acompletion_with_retry(model="test", messages=[]) == "ok"
            assert mock_acompletion.call_count == 1

    @pytest.mark.parametrize(
        "error", [ConnectionError("conn"), TimeoutError("slow"), OSError("net")]
    )
    async def test_retries_transient_errors(self, error: Exception) -> None:
        mock_acompletion = AsyncMock(side_effect=[error, "ok"])
        with patch("litellm.acompletion", mock_acompletion):
            assert await _acompletion_with_retry(model="test", messages=[]) == "ok"
            assert mock_acompletion.call_count == 2

    async def test_gives_up_after_3_attempts(self) -> None:
        mock_acompletion = AsyncMock(
            side_effect=[ConnectionError("1"), ConnectionError("2"), ConnectionError("3")]
        )
        with patch("litellm.acompletion", mock_acompletion):
            with pytest.raises(ConnectionError, match="3"):
                await _acompletion_with_retry(model="test", messages=[])
            assert mock_acompletion.call_count == 3

    async def test_does_not_retry_value_error(self) -> None:
        mock_acompletion = AsyncMock(side_effect=ValueError("bad input"))
        with patch("litellm.acompletion", mock_acompletion):
            with pytest.raises(ValueError, match="bad input"):
                await _acompletion_with_retry(model="test", messages=[])
            assert mock_acompletion.call_count == 1

    async def test_embedding_retries(self) -> None:
        mock_aembedding = AsyncMock(side_effect=[TimeoutError("slow"), {"data": []}])
        with patch("litellm.aembedding", mock_aembedding):
            assert await _aembedding_with_retry(model="e", input=["x"]) == {"data": []}
            assert mock_aembedding.call_count == 2


# ---------------------------------------------------------------------------
# LiteLLMProvider.complete
# ---------------------------------------------------------------------------


class TestComplete:
    async def test_builds_request(self) -> None:
        mock_acompletion = AsyncMock(return_value=_response("answer"))
        provider = create_provider("test/model", temperature=0.0, max_tokens=64)
        tools = [{"type": "function", "function": {"name": "timer"}}]
        with patch("litellm.acompletion", mock_acompletion):
            completion = await provider.complete("system", [user_message("hello")], tools=tools)

        kwargs = mock_acompletion.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["messages"][1] == {"role": "user", "content": "hello"}
        assert kwargs["tools"] == tools
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 64
        assert completion.text == "answer"

    async def test_omits_unset_options(self) -> None:
        mock_acompletion = AsyncMock(return_value=_response())
        with patch("litellm.acompletion", mock_acompletion):
            await create_provider("test/model").complete("s", [])
        kwargs = mock_acompletion.call_args.kwargs
        assert "tools" not in kwargs
        assert "temperature" not in kwargs
        assert "max_tokens" not in kwargs


# ---------------------------------------------------------------------------
# Response conversion
# ---------------------------------------------------------------------------


class TestResponseToCompletion:
    def test_text(self) -> None:
        completion = _response_to_completion(_response("hello"))
        assert completion.text == "hello"
        assert not completion.has_tool_calls
        assert completion.finish_reason == "stop"

    def test_none_content(self) -> None:
        assert _response_to_completion(_response(None)).text == ""

    def test_tool_calls(self) -> None:
        response = _response(
            None,
            [_tool_call("timer", '{"action": "set", "uuid": "A", "seconds": 5}')],
            finish_reason="tool_calls",
        )
        completion = _response_to_completion(response)
        assert completion.has_tool_calls
        call = completion.tool_calls[0]
        assert call.name == "timer"
        assert call.arguments == {"action": "set", "uuid": "A", "seconds": 5}

    def test_nameless_tool_call_skipped(self) -> None:
        response = _response(None, [_tool_call("", "{}")])
        assert not _response_to_completion(response).has_tool_calls

    def test_no_choices(self) -> None:
        assert _response_to_completion(SimpleNamespace(choices=[])) == Completion()


class TestToolCallFromRaw:
    def test_dict_arguments(self) -> None:
        assert ToolCall.from_raw("1", "t", {"a": 1}).arguments == {"a": 1}

    def test_invalid_json_arguments(self) -> None:
        assert ToolCall.from_raw("1", "t", "{oops").arguments == {}

    def test_non_object_arguments(self) -> None:
        assert ToolCall.from_raw("1", "t", "[1, 2]").arguments == {}

    def test_empty_arguments(self) -> None:
        assert ToolCall.from_raw("1", "t", None).arguments == {}


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class TestEmbeddings:
    def test_vector_from_object(self) -> None:
        response = SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])])
        assert _embedding_vector(response) == [0.1, 0.2]

    def test_vector_from_dict(self) -> None:
        assert _embedding_vector({"data": [{"embedding": [1, 2]}]}) == [1.0, 2.0]

    def test_empty_response(self) -> None:
        with pytest.raises(ValueError):
            _embedding_vector({"data": []})

    async def test_litellm_embedder(self) -> None:
        mock_aembedding = AsyncMock(return_value={"data": [{"embedding": [0.5, 0.5]}]})
        embed = litellm_embedder("openai/text-embedding-3-small")
        with patch("litellm.aembedding", mock_aembedding):
            assert await embed("hello") == [0.5, 0.5]
        kwargs = mock_aembedding.call_args.kwargs
        assert kwargs == {"model": "openai/text-embedding-3-small", "input": ["hello"]}
