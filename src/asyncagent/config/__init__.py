"""Configuration — Pydantic models for asyncagent settings."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM collaborator configuration.

    Model names use litellm's provider-prefix format:
        "anthropic/claude-sonnet-4-5-20250929"
        "openai/gpt-4o"
        "ollama/llama3"

    API keys are read from env vars automatically by litellm.
    """

    model: str = Field(default="openai/gpt-4o-mini")
    embedding_model: str = Field(
        default="openai/text-embedding-3-small",
        description="Embedding model for the episodic memory store (litellm format)",
    )
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)


class SchedulerConfig(BaseModel):
    """Event loop configuration."""

    window_size: int = Field(
        default=5, ge=1, description="Trailing steps passed to the collaborator"
    )
    poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Seconds to wait on the ready queue before re-checking the stop flag",
    )
    reflect: bool = Field(
        default=True,
        description="Produce an episodic record when an activity completes (needs a memory store)",
    )
    memory_top_k: int = Field(
        default=3, ge=0, description="Episodic memories retrieved per submitted goal"
    )
    max_cycles: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Give up on an activity after this many observe->reason cycles. "
            "Unset means no limit."
        ),
    )
    park_timeout: float | None = Field(
        default=None,
        gt=0,
        description=(
            "Seconds an activity may stay in WAITING_FOR_EVENT before a "
            "synthetic 'park.timeout' event wakes it. Unset means wait forever."
        ),
    )
    completed_archive_size: int = Field(
        default=256,
        ge=0,
        description="Completed activities kept around for polling after deregistration",
    )
    audit_log: str | None = Field(
        default=None, description="JSONL file receiving every completed activity"
    )


class TransportConfig(BaseModel):
    """Inbound notification transport."""

    sse_url: str | None = Field(
        default=None, description="Server-sent events endpoint carrying tool notifications"
    )
    reconnect_attempts: int = Field(default=5, ge=1)


class AgentConfig(BaseModel):
    """Top-level asyncagent configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> AgentConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            ASYNCAGENT_MODEL            - Override the collaborator model (litellm format)
            ASYNCAGENT_EMBEDDING_MODEL  - Override the embedding model
            ASYNCAGENT_SSE_URL          - SSE endpoint for tool notifications
            ASYNCAGENT_WINDOW_SIZE      - History window passed to the collaborator
            ASYNCAGENT_POLL_INTERVAL    - Ready-queue poll timeout in seconds
            ASYNCAGENT_MAX_CYCLES       - Cycle cap per activity
            ASYNCAGENT_PARK_TIMEOUT     - Max seconds parked in WAITING_FOR_EVENT
        """
        # .env is looked up from the working directory. override=True so an
        # edited .env wins over stale exported values.
        load_dotenv(find_dotenv(usecwd=True), override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        llm = config_data.get("llm", {})
        scheduler = config_data.get("scheduler", {})
        transport = config_data.get("transport", {})

        env_model = os.environ.get("ASYNCAGENT_MODEL")
        if env_model:
            llm["model"] = env_model

        env_embedding_model = os.environ.get("ASYNCAGENT_EMBEDDING_MODEL")
        if env_embedding_model:
            llm["embedding_model"] = env_embedding_model

        env_sse_url = os.environ.get("ASYNCAGENT_SSE_URL")
        if env_sse_url:
            transport["sse_url"] = env_sse_url

        env_window_size = os.environ.get("ASYNCAGENT_WINDOW_SIZE")
        if env_window_size:
            scheduler["window_size"] = int(env_window_size)

        env_poll_interval = os.environ.get("ASYNCAGENT_POLL_INTERVAL")
        if env_poll_interval:
            scheduler["poll_interval"] = float(env_poll_interval)

        env_max_cycles = os.environ.get("ASYNCAGENT_MAX_CYCLES")
        if env_max_cycles:
            scheduler["max_cycles"] = int(env_max_cycles)

        env_park_timeout = os.environ.get("ASYNCAGENT_PARK_TIMEOUT")
        if env_park_timeout:
            scheduler["park_timeout"] = float(env_park_timeout)

        if llm:
            config_data["llm"] = llm
        if scheduler:
            config_data["scheduler"] = scheduler
        if transport:
            config_data["transport"] = transport

        return cls.model_validate(config_data)
