"""Bounded diagnostic log for user-facing troubleshooting.

A ``DiagnosticLog`` is handed to the components that talk to remote
services. It keeps the most recent entries in a ring buffer formatted as
``[timestamp] [AREA] message`` so a user can copy a compact report when a
develop run misbehaves.
"""

from __future__ import annotations

import platform
import threading
from collections import deque
from datetime import UTC, datetime
from typing import Protocol

DEFAULT_CAPACITY: int = 100
_REPORT_HEADER: str = "### TELE DIAGNOSTIC REPORT ###"
_REPORT_SEPARATOR: str = "-" * 43


class DiagnosticSink(Protocol):
    """Anything that accepts area-tagged diagnostic lines."""

    def record(self, area: str, message: str) -> None:
        """Record a single diagnostic line."""
        ...


class DiagnosticLog:
    """Thread-safe ring buffer of diagnostic entries.

    Once ``capacity`` entries are held, each new entry evicts the oldest.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """Initialize the diagnostic log.

        Args:
            capacity: Maximum number of retained entries.

        Raises:
            ValueError: If capacity is not positive.
        """
        if capacity < 1:
            error_message = f"capacity must be positive, got {capacity}"
            raise ValueError(error_message)
        self._entries: deque[str] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Return the maximum number of retained entries."""
        return self._entries.maxlen or 0

    @property
    def entries(self) -> list[str]:
        """Return a snapshot of retained entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def record(self, area: str, message: str) -> None:
        """Append an entry tagged with an upper-cased area.

        Args:
            area: Subsystem tag, e.g. ``VISION`` or ``PIPELINE``.
            message: Free-text diagnostic message.
        """
        timestamp = datetime.now(UTC).isoformat(timespec="seconds")
        entry = f"[{timestamp}] [{area.upper()}] {message}"
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        """Drop all retained entries."""
        with self._lock:
            self._entries.clear()

    def export_report(self) -> str:
        """Render the retained entries as a pasteable report.

        Returns:
            Header block followed by one entry per line.
        """
        header = "\n".join(
            [
                _REPORT_HEADER,
                f"Platform: {platform.platform()} | Python: {platform.python_version()}",
                f"Date: {datetime.now(UTC).isoformat(timespec='seconds')}",
                _REPORT_SEPARATOR,
            ]
        )
        return header + "\n" + "\n".join(self.entries)
