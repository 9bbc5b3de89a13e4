"""
RunLogger: per-run, append-only message trail, plus the end-of-run sink.

One RunLogger is created per invocation and handed to every component.
Messages are mirrored to the process logger as they happen (console + file)
and emitted once, as a single event, to the Windows event log at the end.
"""

import sys
import logging
import logging.handlers
from datetime import datetime

from .config import log
from .state import LogEntry


class RunLogger:
    """Accumulates timestamped messages for one reconciliation pass."""

    def __init__(self, mirror=log):
        self._entries = []
        self._mirror = mirror

    def _append(self, level, msg, args):
        message = msg % args if args else msg
        ts = datetime.now().isoformat(timespec="seconds")
        self._entries.append(LogEntry(ts, logging.getLevelName(level), message))
        if self._mirror is not None:
            self._mirror.log(level, message)

    def info(self, msg, *args):
        self._append(logging.INFO, msg, args)

    def warning(self, msg, *args):
        self._append(logging.WARNING, msg, args)

    def error(self, msg, *args):
        self._append(logging.ERROR, msg, args)

    def entries(self):
        return tuple(self._entries)

    def lines(self):
        return [e.render() for e in self._entries]

    def __len__(self):
        return len(self._entries)


def _event_log_handler(source):
    """NTEventLogHandler needs pywin32; None off Windows."""
    if sys.platform != "win32":
        return None
    return logging.handlers.NTEventLogHandler(source, logtype="Application")


def emit(lines, source, success=True, handler_factory=_event_log_handler):
    """
    Hand the run's lines to the event log under `source`.
    Sink errors are reported to the process log and never propagate.
    """
    if not lines:
        return False
    try:
        handler = handler_factory(source)
        if handler is None:
            return False
        try:
            level = logging.INFO if success else logging.ERROR
            record = logging.LogRecord(
                source, level, __file__, 0, "\n".join(lines), None, None,
            )
            handler.emit(record)
        finally:
            handler.close()
        return True
    except Exception as e:
        log.warning("Event log sink failed (%s): %s", source, e)
        return False
