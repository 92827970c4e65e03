"""Append-only JSONL export of completed activities."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles

from asyncagent.activity import Activity

logger = logging.getLogger(__name__)


async def append_audit_record(path: str | Path, activity: Activity) -> None:
    """Append one completed activity as a JSON line."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    record = activity.to_dict()
    async with aiofiles.open(path, "a", encoding="utf-8") as f:
        await f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")


async def load_audit_log(path: str | Path) -> list[dict[str, Any]]:
    """Read an audit log back. Malformed lines are skipped."""
    path = Path(path).expanduser()
    records: list[dict[str, Any]] = []
    if not path.exists():
        return records

    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        async for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed JSONL line in %s", path)
    return records
