"""Long-term episodic records of finished activities.

The agent only depends on the two-method :class:`MemoryStore` contract.
:class:`InMemoryMemoryStore` is the bundled nearest-neighbour implementation:
records are embedded on save and ranked by cosine similarity on retrieval.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol, runtime_checkable

import numpy as np

logger = logging.getLogger(__name__)

Embedder = Callable[[str], Awaitable[list[float]]]


@dataclass
class EpisodicRecord:
    """Outcome of one completed activity, phrased for later retrieval."""

    original_goal: str
    outcome: str  # "SUCCESS" | "FAILURE" | "ABANDONED" | free text
    summary: str = ""
    procedure: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    def to_text_content(self) -> str:
        """The text a future activity reads when this memory is retrieved."""
        steps = "\n- ".join(self.procedure) if self.procedure else "(none recorded)"
        return (
            f"PAST TASK: {self.original_goal}\n"
            f"OUTCOME: {self.outcome}\n"
            f"SUMMARY: {self.summary}\n"
            f"PROCEDURE USED:\n- {steps}\n"
        )


@runtime_checkable
class MemoryStore(Protocol):
    """Nearest-neighbour text store for episodic records."""

    async def save(self, record: EpisodicRecord) -> None: ...

    async def retrieve_top_k(self, query: str, k: int) -> list[str]: ...


@dataclass
class _Entry:
    record: EpisodicRecord
    text: str
    vector: np.ndarray


class InMemoryMemoryStore:
    """In-process vector store for episodic records.

    Not persisted. ``min_score`` drops weak matches so an unrelated past
    task is not injected into a new activity's context.
    """

    def __init__(self, embedder: Embedder, min_score: float = 0.6) -> None:
        self._embedder = embedder
        self._min_score = min_score
        self._entries: list[_Entry] = []

    def __len__(self) -> int:
        return len(self._entries)

    async def save(self, record: EpisodicRecord) -> None:
        text = record.to_text_content()
        vector = np.asarray(await self._embedder(text), dtype=float)
        self._entries.append(_Entry(record=record, text=text, vector=vector))
        logger.info("Memory saved: %s (%s)", record.original_goal, record.outcome)

    async def retrieve_top_k(self, query: str, k: int) -> list[str]:
        if k <= 0 or not self._entries:
            return []
        query_vector = np.asarray(await self._embedder(query), dtype=float)

        scored = [
            (_cosine_similarity(query_vector, e.vector), e) for e in self._entries
        ]
        scored = [(s, e) for s, e in scored if s >= self._min_score]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [e.text for _, e in scored[:k]]


def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    if a.shape != b.shape:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


__all__ = [
    "Embedder",
    "EpisodicRecord",
    "InMemoryMemoryStore",
    "MemoryStore",
]
