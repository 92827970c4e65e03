"""Reasoning collaborators: the contract and the litellm-backed default."""

from asyncagent.brain.llm import LiteLLMCollaborator
from asyncagent.brain.protocol import ReasoningCollaborator

__all__ = ["LiteLLMCollaborator", "ReasoningCollaborator"]
