"""Inbound notification transports."""

from asyncagent.transport.sse import SSEListener, parse_sse_line

__all__ = ["SSEListener", "parse_sse_line"]
