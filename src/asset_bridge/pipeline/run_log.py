"""Per-run log message buffer.

Each orchestrator owns one :class:`RunLogBuffer`. While a buffer is bound with
:meth:`RunLogBuffer.capture`, the structlog processor installed by
``configure_logging`` copies every log event emitted in the same asyncio task
into it. The rendered buffer accompanies the final run-log update and is then
cleared.
"""

import logging
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

DEFAULT_BUFFER_SIZE = 1000

_active_buffer: ContextVar["RunLogBuffer | None"] = ContextVar("asset_bridge_run_log", default=None)


class RunLogBuffer:
    """Bounded ring buffer of ``"LEVEL: message"`` lines."""

    def __init__(self, max_lines: int = DEFAULT_BUFFER_SIZE, level: str = "INFO"):
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self._lines: deque[str] = deque(maxlen=max_lines)
        self.level = level

    @property
    def level(self) -> str:
        return logging.getLevelName(self._level_no)

    @level.setter
    def level(self, value: str) -> None:
        level_no = logging.getLevelName(value.upper())
        if not isinstance(level_no, int):
            raise ValueError(f"Unknown log level: {value}")
        self._level_no = level_no

    @property
    def max_lines(self) -> int:
        return self._lines.maxlen or 0

    def accepts(self, level: str) -> bool:
        """Whether an event of ``level`` is recorded at the current threshold."""
        level_no = logging.getLevelName(level.upper())
        return isinstance(level_no, int) and level_no >= self._level_no

    def append(self, level: str, message: str) -> None:
        self._lines.append(f"{level.upper()}: {message}")

    def lines(self) -> list[str]:
        return list(self._lines)

    def render(self) -> str:
        return "\n".join(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)

    @contextmanager
    def capture(self) -> Iterator["RunLogBuffer"]:
        """Bind this buffer to the current context for the duration of the block."""
        token = _active_buffer.set(self)
        try:
            yield self
        finally:
            _active_buffer.reset(token)


def active_buffer() -> RunLogBuffer | None:
    """Return the buffer bound to the current context, if any."""
    return _active_buffer.get()
