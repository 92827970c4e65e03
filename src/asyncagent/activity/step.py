"""One immutable entry in an activity's history."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Step:
    """A single phase execution recorded in an activity's history.

    The beliefs snapshot is copied at construction time, so later belief
    updates never leak into steps that were already recorded.
    """

    phase: str  # "reason" | "act" | "observe"
    input: str
    result: str
    beliefs: Mapping[str, Any] = field(default_factory=dict)
    events: tuple[Any, ...] = ()
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        # Frozen dataclass: freeze the containers via object.__setattr__.
        object.__setattr__(
            self, "beliefs", MappingProxyType(copy.deepcopy(dict(self.beliefs)))
        )
        object.__setattr__(self, "events", tuple(copy.deepcopy(list(self.events))))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "phase": self.phase,
            "input": self.input,
            "result": self.result,
            "beliefs": dict(self.beliefs),
            "events": list(self.events),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)
