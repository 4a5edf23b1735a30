"""
Progress reporting for tenantscope.

Engines emit ProgressEvent objects to a reporter passed in at construction.
Events for one run arrive in module registration order with non-decreasing
percentages.
"""

from __future__ import annotations

import queue
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable


@dataclass(frozen=True)
class ProgressEvent:
    """
    One progress update.

    Attributes:
        run_id: Assessment run or inventory collection id
        percentage: Completion from 0 to 100
        operation: What is happening, e.g. "Assessing Privileged Access Management"
        current_domain: Domain value being processed, if any
        timestamp: When the event was emitted
    """

    run_id: str
    percentage: int
    operation: str
    current_domain: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "percentage": self.percentage,
            "operation": self.operation,
            "current_domain": self.current_domain,
            "timestamp": self.timestamp.isoformat(),
        }


class ProgressReporter(ABC):
    """
    Abstract base for progress reporters.

    Reporters must not raise; a failing reporter would otherwise abort
    the run it observes.
    """

    @abstractmethod
    def report(self, event: ProgressEvent) -> None:
        """
        Handle a progress event.

        Args:
            event: Progress update
        """
        pass


class TerminalProgressReporter(ProgressReporter):
    """Writes a progress bar line per event to a stream."""

    def __init__(self, output: Any = None, bar_width: int = 30):
        """
        Initialize terminal reporter.

        Args:
            output: Output stream (default: sys.stderr)
            bar_width: Width of progress bar
        """
        self._output = output or sys.stderr
        self._bar_width = bar_width

    def report(self, event: ProgressEvent) -> None:
        filled = int(self._bar_width * event.percentage / 100)
        bar = f"[{'█' * filled}{'░' * (self._bar_width - filled)}]"
        self._output.write(f"{bar} {event.percentage:3d}% {event.operation}\n")
        self._output.flush()


class CallbackProgressReporter(ProgressReporter):
    """
    Forwards events to a callback.

    Useful for integration with UI frameworks or job runners.
    """

    def __init__(self, on_event: Callable[[ProgressEvent], None]):
        self._on_event = on_event

    def report(self, event: ProgressEvent) -> None:
        self._on_event(event)


class QueueProgressReporter(ProgressReporter):
    """
    Collects events in a thread-safe queue.

    Lets another thread consume the event stream of a running assessment.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[ProgressEvent] = queue.Queue()

    def report(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: float | None = None) -> ProgressEvent | None:
        """Get the next event, or None on timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ProgressEvent]:
        """Remove and return every queued event."""
        events: list[ProgressEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


class QuietProgressReporter(ProgressReporter):
    """Silent progress reporter that does nothing."""

    def report(self, event: ProgressEvent) -> None:
        """No-op."""
        pass
