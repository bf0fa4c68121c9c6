"""Levelled console logging and engine assertions."""

from __future__ import annotations

import os
import sys
import threading
import time
from enum import IntEnum
from typing import Callable, Optional

ANSI_COLOR_RED = "\x1b[31m"
ANSI_COLOR_GREEN = "\x1b[32m"
ANSI_COLOR_YELLOW = "\x1b[33m"
ANSI_COLOR_BLUE = "\x1b[34m"
ANSI_COLOR_RESET = "\x1b[0m"


class LogLevel(IntEnum):
    """Severity of a log message; messages below the current level are dropped."""

    TEST = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    SUPPRESSED = 4


class EngineAssertionError(Exception):
    """Raised when an engine check fails."""

    def __init__(self, message: str, file: str, line: int) -> None:
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line


AssertHandler = Callable[[str, str, int], None]

_LEVEL_NAMES = {
    LogLevel.TEST: "TEST",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARN",
    LogLevel.ERROR: "ERROR",
}

_LEVEL_COLORS = {
    LogLevel.TEST: ANSI_COLOR_BLUE,
    LogLevel.INFO: ANSI_COLOR_RESET,
    LogLevel.WARNING: ANSI_COLOR_YELLOW,
    LogLevel.ERROR: ANSI_COLOR_RED,
}

_lock = threading.Lock()
_current_level = LogLevel.TEST
_assert_handler: Optional[AssertHandler] = None
_logged_once: set = set()
_next_periodic: dict = {}


def get_time_ms() -> int:
    """Return wall-clock time in milliseconds."""
    return time.time_ns() // 1_000_000


def set_log_level(level: LogLevel) -> None:
    """Drop all messages below ``level`` from now on."""
    global _current_level
    _current_level = LogLevel(level)


def register_assert_handler(handler: AssertHandler) -> None:
    """Install the assertion handler; once installed it is kept."""
    global _assert_handler
    with _lock:
        if _assert_handler is None:
            _assert_handler = handler


def reset_assert_handler() -> None:
    """Remove any installed assertion handler."""
    global _assert_handler
    with _lock:
        _assert_handler = None


def _call_site(depth: int) -> tuple[str, int]:
    frame = sys._getframe(depth + 1)
    return os.path.basename(frame.f_code.co_filename), frame.f_lineno


def _format(message: str, args: tuple) -> str:
    return message % args if args else message


def _timestamp() -> str:
    now = time.time()
    seconds = int(now)
    ms = round((now - seconds) * 1000)
    if ms >= 1000:
        ms -= 1000
        seconds += 1
    return time.strftime("%H:%M:%S", time.localtime(seconds)) + f":{ms:03d}"


def _emit(level: LogLevel, message: str, args: tuple, file: str, line: int) -> None:
    level = LogLevel(level)
    if level < _current_level:
        return
    color = _LEVEL_COLORS.get(level, ANSI_COLOR_RESET)
    name = _LEVEL_NAMES.get(level, level.name)
    text = _format(message, args)
    sys.stdout.write(
        f"[{color}{name}{ANSI_COLOR_RESET}] [{_timestamp()}] -- "
        f"{color}{text}{ANSI_COLOR_RESET} ({file}:{line})\n"
    )


def log_message(level: LogLevel, message: str, *args) -> None:
    """Print a timestamped, coloured message tagged with its call site."""
    file, line = _call_site(1)
    _emit(level, message, args, file, line)


def log_raw(level: LogLevel, message: str, *args) -> None:
    """Print ``message`` as is, without decoration or newline."""
    if LogLevel(level) < _current_level:
        return
    sys.stdout.write(_format(message, args))


def log_once(key, level: LogLevel, message: str, *args) -> None:
    """Log a message only the first time ``key`` is seen."""
    with _lock:
        if key in _logged_once:
            return
        _logged_once.add(key)
    file, line = _call_site(1)
    _emit(level, message, args, file, line)


def log_periodic(key, level: LogLevel, period_ms: int, message: str, *args) -> None:
    """Log a message for ``key`` at most once every ``period_ms`` milliseconds."""
    current = get_time_ms()
    with _lock:
        if current < _next_periodic.get(key, 0):
            return
        _next_periodic[key] = current + period_ms
    file, line = _call_site(1)
    _emit(level, message, args, file, line)


def check(condition, message: str, *args) -> None:
    """Fail with :class:`EngineAssertionError` when ``condition`` is false.

    An installed handler is called with the failure text and call site
    before the exception is raised.
    """
    if condition:
        return
    file, line = _call_site(1)
    text = f"ASSERT FAILED -- {_format(message, args)}"
    handler = _assert_handler
    if handler is not None:
        handler(text, file, line)
    raise EngineAssertionError(text, file, line)