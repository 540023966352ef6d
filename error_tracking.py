"""Anomaly sinks for Yatzy score tracking.

A sink receives bug reports from the consistency monitor. Every sink is
best-effort: a failing sink logs a warning and returns, it never raises back
into the game.
"""
from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

from settings import error_tracking_enabled

logger = logging.getLogger(__name__)

CRITICAL = "critical"

MAX_REPORTS = 500


class AnomalySink(ABC):
    """Destination for anomaly reports."""

    @abstractmethod
    def log(self, bug_type: str, severity: str, description: str, context: dict) -> None: ...

    def close(self) -> None:
        """Release whatever the sink holds. Most sinks hold nothing."""


class NullSink(AnomalySink):
    """Discards every report."""

    def log(self, bug_type, severity, description, context):
        pass


class LoggingSink(AnomalySink):
    """Writes reports to the Python log. The default during development."""

    def log(self, bug_type, severity, description, context):
        logger.error("[%s] %s (%s): %s", bug_type, description, severity,
                     json.dumps(context, default=str, sort_keys=True))


class MemorySink(AnomalySink):
    """Keeps reports in a list. Handy for tests and for the simulate command."""

    def __init__(self) -> None:
        self.reports: list[dict] = []

    def log(self, bug_type, severity, description, context):
        self.reports.append(build_report(bug_type, severity, description, context))

    def of_type(self, bug_type: str) -> list[dict]:
        return [r for r in self.reports if r["bugType"] == bug_type]


class JsonFileSink(AnomalySink):
    """Appends reports to a JSON list on disk, keeping the newest MAX_REPORTS."""

    def __init__(self, path: str | Path | None = None, player_id: str | None = None) -> None:
        if path is None:
            path = Path.home() / ".yatzy_errors.json"
        self.path = Path(path)
        self.player_id = player_id

    def load(self) -> list[dict]:
        try:
            data = json.loads(self.path.read_text())
        except (FileNotFoundError, json.JSONDecodeError, OSError):
            return []
        return data if isinstance(data, list) else []

    def log(self, bug_type, severity, description, context):
        reports = self.load()
        reports.append(build_report(bug_type, severity, description, context, self.player_id))
        reports = reports[-MAX_REPORTS:]
        try:
            self._write(json.dumps(reports, indent=2, default=str).encode())
        except OSError:
            logger.warning("Failed to write anomaly report %s to %s", bug_type, self.path,
                           exc_info=True)

    def _write(self, raw):
        """Atomically replace the report file (temp file + rename)."""
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        closed = False
        try:
            os.write(fd, raw)
            os.close(fd)
            closed = True
            os.replace(tmp, self.path)
        except BaseException:
            if not closed:
                os.close(fd)
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise


class BackgroundSink(AnomalySink):
    """Hands reports to another sink on a single worker thread.

    `log` returns immediately; a failure inside the wrapped sink is logged
    at warning level and dropped.
    """

    def __init__(self, sink: AnomalySink) -> None:
        self.sink = sink
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="anomaly-sink")

    def log(self, bug_type, severity, description, context):
        self._executor.submit(self._deliver, bug_type, severity, description, context)

    def _deliver(self, bug_type, severity, description, context):
        try:
            self.sink.log(bug_type, severity, description, context)
        except Exception:
            logger.warning("Anomaly sink failed for %s", bug_type, exc_info=True)

    def flush(self) -> None:
        """Block until every queued report has been delivered."""
        self._executor.submit(lambda: None).result()

    def close(self) -> None:
        """Deliver what is queued, stop the worker, then close the wrapped sink."""
        self._executor.shutdown(wait=True)
        self.sink.close()


def build_report(bug_type, severity, description, context, player_id=None):
    """Shape a report the way the remote error log stores it."""
    now = time.time()
    return {
        "bugType": bug_type,
        "severity": severity,
        "description": description,
        "context": context,
        "playerId": player_id,
        "timestamp": int(now * 1000),
        "timestampISO": datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        "device": {
            "platform": platform.system() or "unknown",
            "version": platform.release() or "unknown",
            "python": platform.python_version(),
        },
    }


def make_sink(settings: dict, path: str | Path | None = None) -> AnomalySink:
    """Pick the sink for the current configuration.

    With error tracking enabled, reports are persisted in the background;
    otherwise they only go to the log.
    """
    if error_tracking_enabled(settings):
        return BackgroundSink(JsonFileSink(path, player_id=settings.get("player_id")))
    return LoggingSink()
