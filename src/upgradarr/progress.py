"""Run progress reporting."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    step: str
    processed_count: int = 0
    total_count: int = 0
    error_count: int = 0
    message: Optional[str] = None

    @property
    def fraction(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return min(self.processed_count / self.total_count, 1.0)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "processed_count": self.processed_count,
            "total_count": self.total_count,
            "error_count": self.error_count,
            "message": self.message,
        }


ProgressListener = Callable[[ProgressEvent], None]


class ProgressTracker:
    """Keeps the latest progress event and fans it out to listeners.

    A failing listener is logged and skipped; it never interrupts the run.
    """

    def __init__(self) -> None:
        self._listeners: List[ProgressListener] = []
        self._latest: Optional[ProgressEvent] = None
        self._lock = threading.Lock()

    @property
    def latest(self) -> Optional[ProgressEvent]:
        with self._lock:
            return self._latest

    def add_listener(self, listener: ProgressListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def update(
        self,
        step: str,
        processed_count: int = 0,
        total_count: int = 0,
        error_count: int = 0,
        message: Optional[str] = None,
    ) -> ProgressEvent:
        event = ProgressEvent(step, processed_count, total_count, error_count, message)
        with self._lock:
            self._latest = event
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Progress listener failed for step %s", step)
        return event


class RichProgressListener:
    """Drives a ``rich.progress.Progress`` bar with one task per step."""

    def __init__(self, progress) -> None:
        self.progress = progress
        self._tasks: dict[str, int] = {}

    def __call__(self, event: ProgressEvent) -> None:
        task_id = self._tasks.get(event.step)
        if task_id is None:
            task_id = self.progress.add_task(event.step, total=event.total_count or None)
            self._tasks[event.step] = task_id
        description = event.step if not event.error_count else f"{event.step} ({event.error_count} errors)"
        self.progress.update(
            task_id,
            completed=event.processed_count,
            total=event.total_count or None,
            description=description,
        )
