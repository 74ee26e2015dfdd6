# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""In-memory dispatch counters for data sources."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ExtractorStats:
    """Per-extractor failure tracking."""

    failures: int = 0
    last_error: str | None = None
    last_error_time: datetime | None = None


@dataclass
class DispatchMetrics:
    """Counters for one source.

    Attributes:
        events_dispatched: Events (or collections) fanned out to extractors.
        events_failed: Events where at least one extractor failed.
        extractors: Failure stats keyed by extractor name.
    """

    events_dispatched: int = 0
    events_failed: int = 0
    extractors: dict[str, ExtractorStats] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, failures: list[tuple[str, BaseException]]) -> None:
        """Record the outcome of one fan-out."""
        now = datetime.now()
        with self._lock:
            self.events_dispatched += 1
            if failures:
                self.events_failed += 1
            for name, exc in failures:
                stats = self.extractors.setdefault(name, ExtractorStats())
                stats.failures += 1
                stats.last_error = str(exc) or type(exc).__name__
                stats.last_error_time = now

    def failures_for(self, name: str) -> int:
        with self._lock:
            stats = self.extractors.get(name)
            return stats.failures if stats else 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        with self._lock:
            return {
                "events_dispatched": self.events_dispatched,
                "events_failed": self.events_failed,
                "extractors": {
                    name: {
                        "failures": stats.failures,
                        "last_error": stats.last_error,
                        "last_error_time": (
                            stats.last_error_time.isoformat() if stats.last_error_time else None
                        ),
                    }
                    for name, stats in self.extractors.items()
                },
            }
