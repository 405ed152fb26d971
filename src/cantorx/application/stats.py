"""
Statistics Tracker - Harvest Telemetry

This module tracks process-wide telemetry about harvesting:
- Total, successful and failed scrapes
- The rolling window of expensive tasks (steps slower than a threshold)
- Timing of the last harvest cycle

Telemetry is not part of the data contract and resets on restart.

Files that USE this module:
- cantorx.application.harvester (records every step and cycle)
- cantorx.adapters.web.api (/stats endpoint)

Files that this module USES:
- None (in-memory only)
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_SECONDS = 2.0
DEFAULT_WINDOW = 10


@dataclass(frozen=True)
class ExpensiveTask:
    """A harvest step that took longer than the threshold."""
    source_name: str
    currency: str
    duration_seconds: float
    succeeded: bool
    at: str  # ISO datetime string


@dataclass
class CycleStats:
    """Outcome of one harvest cycle."""
    started_at: str  # ISO datetime string
    finished_at: Optional[str] = None
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0


class HarvestStats:
    """Thread-safe counters and the bounded expensive-tasks window."""

    def __init__(self, threshold_seconds: float = DEFAULT_THRESHOLD_SECONDS, window: int = DEFAULT_WINDOW):
        """
        Initialize stats tracker.

        Args:
            threshold_seconds: Steps slower than this are kept in the window
            window: Maximum number of expensive tasks retained (oldest dropped first)
        """
        self.threshold_seconds = threshold_seconds
        self._lock = threading.Lock()
        self._expensive: deque[ExpensiveTask] = deque(maxlen=window)
        self.total_scrapes = 0
        self.successful_scrapes = 0
        self.failed_scrapes = 0
        self.cycles_completed = 0
        self.last_cycle: Optional[CycleStats] = None

    def record_task(self, source_name: str, currency: str, duration_seconds: float, succeeded: bool) -> bool:
        """
        Record one attempted harvest step.

        Returns:
            True if the step was slow enough to enter the expensive-tasks window
        """
        with self._lock:
            self.total_scrapes += 1
            if succeeded:
                self.successful_scrapes += 1
            else:
                self.failed_scrapes += 1
            if duration_seconds <= self.threshold_seconds:
                return False
            self._expensive.append(
                ExpensiveTask(
                    source_name=source_name,
                    currency=currency,
                    duration_seconds=round(duration_seconds, 3),
                    succeeded=succeeded,
                    at=datetime.now(timezone.utc).isoformat(),
                )
            )
        logger.debug("Expensive task: %s/%s took %.2fs", source_name, currency, duration_seconds)
        return True

    def record_cycle(self, cycle: CycleStats) -> None:
        with self._lock:
            self.cycles_completed += 1
            self.last_cycle = cycle

    def expensive_tasks(self) -> list[ExpensiveTask]:
        """Expensive tasks, oldest first."""
        with self._lock:
            return list(self._expensive)

    def snapshot(self) -> Dict:
        """
        Get a JSON-serializable view of all telemetry.

        Returns:
            Dictionary with counters, last cycle and expensive tasks
        """
        with self._lock:
            return {
                "total_scrapes": self.total_scrapes,
                "successful_scrapes": self.successful_scrapes,
                "failed_scrapes": self.failed_scrapes,
                "cycles_completed": self.cycles_completed,
                "last_cycle": asdict(self.last_cycle) if self.last_cycle else None,
                "expensive_tasks": [asdict(t) for t in self._expensive],
            }


# Global stats tracker instance
stats_tracker = HarvestStats()
