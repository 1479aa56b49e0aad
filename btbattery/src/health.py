"""
Health file writer for the sampling agent.

Writes a JSON health file at a configurable path with three fields:
- last_sample_ts: ISO timestamp of the most recent tick.
- last_push_ts: ISO timestamp of the most recent successful push.
- connected: Connection state observed on the most recent tick.

The file is rewritten on every state change so a container HEALTHCHECK can
tell a stalled agent from a disconnected device. Samples themselves are
never stored.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes agent health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_sample_ts: str | None = None
        self._last_push_ts: str | None = None
        self._connected: bool = False

    def record_sample(self, connected: bool) -> None:
        """Record a tick and its observed connection state."""
        self._last_sample_ts = datetime.now(tz=UTC).isoformat()
        self._connected = connected
        self._write()

    def record_push(self) -> None:
        """Record a successful push."""
        self._last_push_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def _write(self) -> None:
        data = {
            "last_sample_ts": self._last_sample_ts,
            "last_push_ts": self._last_push_ts,
            "connected": self._connected,
        }
        self.path.write_text(json.dumps(data))
