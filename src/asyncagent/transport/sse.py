"""Feeds tool-server notifications from an SSE stream to the event router."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from asyncagent.agent.router import EventRouter

logger = logging.getLogger(__name__)

RECONNECT_ERRORS = (httpx.TransportError, ConnectionError, OSError)

_DATA_PREFIX = "data:"


def parse_sse_line(line: str) -> str | None:
    """Return the JSON document carried by a ``data:`` line, else None.

    Comments, ``event:``/``id:`` fields, blank keep-alives, ``[DONE]`` and
    anything that is not a JSON object are skipped.
    """
    line = line.strip()
    if not line.startswith(_DATA_PREFIX):
        return None
    data = line[len(_DATA_PREFIX):].strip()
    if not data or data == "[DONE]":
        return None
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping non-JSON SSE data: %s", data[:200])
        return None
    if not isinstance(parsed, dict):
        return None
    return data


class SSEListener:
    """Streams an SSE endpoint into an :class:`EventRouter`.

    Transport failures are retried with exponential backoff. A stream that
    ends cleanly is not reopened.
    """

    def __init__(
        self,
        url: str,
        router: EventRouter,
        attempts: int = 5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._router = router
        self._attempts = attempts
        self._client = client

    @property
    def url(self) -> str:
        return self._url

    async def run(self) -> int:
        """Listen until the stream ends. Returns the number of documents routed."""
        routed = 0
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RECONNECT_ERRORS),
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=1, min=1, max=30),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async for data in self.messages():
                    self._router.route(data)
                    routed += 1
        logger.info("SSE stream %s closed after %d messages", self._url, routed)
        return routed

    async def messages(self) -> AsyncIterator[str]:
        """Yield the JSON documents of one connection."""
        client = self._client or httpx.AsyncClient(timeout=None)
        try:
            async with client.stream(
                "GET", self._url, headers={"Accept": "text/event-stream"}
            ) as response:
                response.raise_for_status()
                logger.info("Connected to SSE stream %s", self._url)
                async for line in response.aiter_lines():
                    data = parse_sse_line(line)
                    if data is not None:
                        logger.debug("SSE message: %s", data)
                        yield data
        finally:
            if self._client is None:
                await client.aclose()
