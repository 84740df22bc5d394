from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .models import LogEntry, LogLevel, RunResult

logger = logging.getLogger(__name__)

LogListener = Callable[[LogEntry], None]

_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class RunEmitter:
    """Fans run events out to the result, live listeners and the durable log.

    ``info``/``success``/``warning``/``error`` entries become part of
    ``RunResult.logs``. ``detail`` lines are diagnostics: listeners and the log
    file see them, the result does not.
    """

    def __init__(self, result: RunResult | None = None, listeners: list[LogListener] | None = None) -> None:
        self.result = result if result is not None else RunResult()
        self._listeners: list[LogListener] = list(listeners or [])

    def subscribe(self, listener: LogListener) -> None:
        self._listeners.append(listener)

    def _publish(self, entry: LogEntry) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("log listener failed")

    def _write(self, level: LogLevel, message: str, details: str | None) -> None:
        line = message if level is not LogLevel.SUCCESS else f"OK: {message}"
        if details:
            line = f"{line}\n    Details: {details}"
        logger.log(_PY_LEVELS[level], line)

    def emit(self, level: LogLevel, message: str, details: str | None = None, *, record: bool = True) -> LogEntry:
        entry = LogEntry(timestamp=datetime.now(), level=level, message=message, details=details)
        if record:
            self.result.logs.append(entry)
        self._publish(entry)
        self._write(level, message, details)
        return entry

    def info(self, message: str, details: str | None = None) -> LogEntry:
        return self.emit(LogLevel.INFO, message, details)

    def success(self, message: str, details: str | None = None) -> LogEntry:
        return self.emit(LogLevel.SUCCESS, message, details)

    def warning(self, message: str, details: str | None = None) -> LogEntry:
        return self.emit(LogLevel.WARNING, message, details)

    def error(self, message: str, details: str | None = None) -> LogEntry:
        return self.emit(LogLevel.ERROR, message, details)

    def detail(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        return self.emit(level, message, record=False)
