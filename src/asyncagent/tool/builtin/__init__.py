"""Built-in tools."""

from asyncagent.tool.builtin.timer import TimerTool

__all__ = ["TimerTool"]
