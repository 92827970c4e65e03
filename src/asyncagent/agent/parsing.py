"""Tolerant parsing of free-form collaborator output.

Collaborators are asked for raw JSON but routinely wrap it in markdown
fences or surround it with prose. Everything here locates the JSON object
by brace matching, never raises, and falls back to the most conservative
reading: no tool invoked, not completed, no belief updates.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from asyncagent.errors import MalformedResponseError
from asyncagent.memory import EpisodicRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParseOk:
    value: dict[str, Any]


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    raw: str

    def as_error(self) -> MalformedResponseError:
        return MalformedResponseError(self.reason, self.raw)


ParseResult = ParseOk | ParseFailure


@dataclass
class ObservationResult:
    """What the observe phase asked for."""

    completed: bool = False
    summary: str = ""
    new_progress: str | None = None
    update_variables: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Brace matching
# ---------------------------------------------------------------------------


def _span_end(text: str, start: int) -> int | None:
    """End (exclusive) of the balanced ``{...}`` opened at ``start``.

    Braces inside JSON string literals are ignored. None if the span never
    closes.
    """
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _candidate_spans(text: str) -> Iterator[tuple[int, int]]:
    """Yield (start, end) of a balanced span for every ``{`` in ``text``.

    Each ``{`` is tried as a start in turn, so a quote or brace in leading
    prose that opens a bogus span cannot hide a later object.
    """
    start = text.find("{")
    while start != -1:
        end = _span_end(text, start)
        if end is not None:
            yield start, end
        start = text.find("{", start + 1)


def extract_json_span(text: str | None) -> str | None:
    """Return the first balanced ``{...}`` span, or None."""
    if not text:
        return None
    for start, end in _candidate_spans(text):
        return text[start:end]
    return None


def parse_json_object(text: str | None) -> ParseResult:
    """Find and decode the first JSON object embedded in ``text``.

    A span that does not decode is skipped and the scan resumes at the next
    ``{`` after its start, so stray braces in leading prose do not hide the
    real payload.
    """
    raw = text or ""
    if not raw.strip():
        return ParseFailure("empty response", raw)

    saw_span = False
    for start, end in _candidate_spans(raw):
        saw_span = True
        try:
            value = json.loads(raw[start:end])
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return ParseOk(value)

    if not saw_span:
        return ParseFailure("no JSON object found", raw)
    return ParseFailure("invalid JSON object", raw)


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _completed_flag(obj: dict[str, Any]) -> bool:
    if "completed" in obj:
        flag = _as_bool(obj["completed"])
        if flag is not None:
            return flag

    nested = obj.get("result")
    if isinstance(nested, dict) and "completed" in nested:
        flag = _as_bool(nested["completed"])
        if flag is not None:
            return flag

    return False


def parse_completed(text: str | None) -> bool:
    """Read the completion flag. Unparsable output never completes."""
    result = parse_json_object(text)
    if isinstance(result, ParseFailure):
        logger.warning(
            "Could not parse completion flag, keeping activity alive: %s",
            result.as_error(),
        )
        return False
    return _completed_flag(result.value)


def parse_tool_name(text: str | None) -> str | None:
    """Read the ``tool_name`` marker from an act result.

    Absent, null, blank, or the literal string "null" all mean no tool.
    """
    result = parse_json_object(text)
    if isinstance(result, ParseFailure):
        logger.warning("Invalid JSON in act response: %s", result.as_error())
        return None

    name = result.value.get("tool_name")
    if name is None or isinstance(name, (dict, list)):
        return None
    name = str(name).strip()
    if not name or name.lower() in ("null", "none"):
        return None
    return name


def parse_observation(text: str | None) -> ObservationResult:
    """Read completed/summary/new_progress/update_variables from an observe result."""
    result = parse_json_object(text)
    if isinstance(result, ParseFailure):
        logger.warning("Could not parse observe response: %s", result.as_error())
        return ObservationResult()

    obj = result.value
    observation = ObservationResult(completed=_completed_flag(obj))

    summary = obj.get("summary")
    if summary is not None:
        observation.summary = summary if isinstance(summary, str) else json.dumps(summary)

    progress = obj.get("new_progress")
    if progress is not None:
        observation.new_progress = (
            progress if isinstance(progress, str) else json.dumps(progress)
        )

    updates = obj.get("update_variables")
    if isinstance(updates, dict):
        observation.update_variables = updates
    elif updates is not None:
        logger.debug("Ignoring non-object update_variables: %r", updates)

    return observation


def parse_reflection(goal: str, outcome: str, text: str | None) -> EpisodicRecord:
    """Turn a reflect result into an episodic record.

    Expected shape: ``{"summary": str, "procedure": [str, ...]}``. If the
    text is not JSON, the stripped text itself becomes the summary.
    """
    result = parse_json_object(text)
    if isinstance(result, ParseFailure):
        logger.debug("Reflection was not JSON, storing raw text: %s", result.as_error())
        return EpisodicRecord(
            original_goal=goal, outcome=outcome, summary=(text or "").strip()
        )

    obj = result.value
    procedure = obj.get("procedure") or obj.get("successful_procedure") or []
    if isinstance(procedure, str):
        procedure = [procedure]
    elif not isinstance(procedure, list):
        procedure = []

    summary = obj.get("summary", "")
    return EpisodicRecord(
        original_goal=goal,
        outcome=str(obj.get("outcome") or outcome),
        summary=summary if isinstance(summary, str) else json.dumps(summary),
        procedure=[str(p) for p in procedure],
    )
