"""Diagnostic log for conversion sessions.

Converter modules report fidelity loss through the standard ``logging`` API.
While a session is running, :func:`capture_diagnostics` routes the records of
the ``psd2scene`` logger hierarchy into the session's :class:`DiagnosticLog`, so
that callers can inspect the messages once the conversion has finished.
"""

import contextlib
import contextvars
import dataclasses
import logging
import threading
from typing import Iterator, Literal

Severity = Literal["info", "warning", "error"]

PACKAGE_LOGGER = "psd2scene"

_current_log: contextvars.ContextVar["DiagnosticLog | None"] = contextvars.ContextVar(
    "psd2scene_diagnostic_log", default=None
)


@dataclasses.dataclass(frozen=True)
class LogMessage:
    """A single diagnostic message."""

    message: str
    severity: Severity


class DiagnosticLog:
    """Append-only ordered log of diagnostic messages."""

    def __init__(self) -> None:
        self._messages: list[LogMessage] = []

    def log(self, message: str, severity: Severity = "info") -> None:
        self._messages.append(LogMessage(message, severity))

    @property
    def messages(self) -> list[LogMessage]:
        """Copy of the recorded messages, in order."""
        return list(self._messages)

    def filter(self, severity: Severity) -> list[LogMessage]:
        return [m for m in self._messages if m.severity == severity]

    @property
    def errors(self) -> list[LogMessage]:
        return self.filter("error")

    @property
    def warnings(self) -> list[LogMessage]:
        return self.filter("warning")

    def __iter__(self) -> Iterator[LogMessage]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self._messages)


def to_severity(levelno: int) -> Severity | None:
    """Map a logging level to a diagnostic severity, or None to drop it."""
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warning"
    if levelno >= logging.INFO:
        return "info"
    return None


class DiagnosticHandler(logging.Handler):
    """Logging handler that forwards records to the active diagnostic log."""

    def emit(self, record: logging.LogRecord) -> None:
        log = _current_log.get()
        if log is None:
            return
        severity = to_severity(record.levelno)
        if severity is None:
            return
        try:
            log.log(record.getMessage(), severity)
        except Exception:
            self.handleError(record)


_handler = DiagnosticHandler()

# Sessions may overlap in tasks or threads. The package logger level is raised
# by the first session to start and restored by the last one to finish.
_sessions_lock = threading.Lock()
_active_sessions = 0
_saved_level = logging.NOTSET


def _enter_session(logger: logging.Logger) -> None:
    global _active_sessions, _saved_level
    with _sessions_lock:
        if _handler not in logger.handlers:
            logger.addHandler(_handler)
        if _active_sessions == 0:
            _saved_level = logger.level
            # Info records are part of the log, so they must pass the logger.
            if logger.getEffectiveLevel() > logging.INFO:
                logger.setLevel(logging.INFO)
        _active_sessions += 1


def _exit_session(logger: logging.Logger) -> None:
    global _active_sessions
    with _sessions_lock:
        _active_sessions -= 1
        if _active_sessions == 0:
            logger.setLevel(_saved_level)


@contextlib.contextmanager
def capture_diagnostics(log: DiagnosticLog | None = None) -> Iterator[DiagnosticLog]:
    """Collect diagnostics emitted inside the context into a log.

    Example::

        with capture_diagnostics() as log:
            await converter.build()
        for message in log:
            print(message.severity, message.message)
    """
    log = log if log is not None else DiagnosticLog()
    logger = logging.getLogger(PACKAGE_LOGGER)
    _enter_session(logger)
    token = _current_log.set(log)
    try:
        yield log
    finally:
        _current_log.reset(token)
        _exit_session(logger)
