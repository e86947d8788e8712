from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ..domain.progress import ProgressEvent

StatusDTO = Dict[str, object]


@dataclass
class UpdateProgressVM:
    """Aggregates progress events into one view-facing snapshot.

    Implements ``ProgressListener`` so it can be registered on the channel
    directly; every callback only touches state under ``_lock``. ``on_change``
    runs on the calling thread, so a GUI should instead register a
    ``QueueProgressListener`` and feed ``apply_events`` from its own loop.
    """

    on_change: Optional[Callable[[StatusDTO], None]] = None
    history_limit: int = 50

    title: str = ""
    status: str = ""
    fraction: float = 0.0
    history: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # ------------------------------------------------------------------
    # ProgressListener
    # ------------------------------------------------------------------
    def on_title_changed(self, text: str) -> None:
        with self._lock:
            self.title = str(text)
        self._notify()

    def on_status_changed(self, text: str) -> None:
        with self._lock:
            self.status = str(text)
            self.history.append(self.status)
            if len(self.history) > self.history_limit:
                del self.history[: len(self.history) - self.history_limit]
        self._notify()

    def on_value_changed(self, fraction: float) -> None:
        with self._lock:
            # the bar never moves backwards within a pass
            self.fraction = max(self.fraction, max(0.0, min(1.0, float(fraction))))
        self._notify()

    # ------------------------------------------------------------------
    def apply_events(self, events: Iterable[ProgressEvent]) -> None:
        """Replay events drained from a ``QueueProgressListener``."""
        for event in events:
            if event.kind == "title":
                self.on_title_changed(str(event.payload))
            elif event.kind == "status":
                self.on_status_changed(str(event.payload))
            elif event.kind == "value":
                self.on_value_changed(float(event.payload))

    def reset(self) -> None:
        with self._lock:
            self.title = ""
            self.status = ""
            self.fraction = 0.0
            self.history.clear()
        self._notify()

    def snapshot(self) -> StatusDTO:
        with self._lock:
            return {
                "title": self.title,
                "status": self.status,
                "fraction": self.fraction,
                "percent": self.fmt_percent(self.fraction),
            }

    @staticmethod
    def fmt_percent(fraction: Optional[float]) -> str:
        """Format a fraction as a whole percentage label."""
        if fraction is None:
            return ""
        try:
            value = float(fraction)
        except (TypeError, ValueError):
            return ""
        value = max(0.0, min(1.0, value))
        return f"{int(value * 100)}%"

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self.snapshot())


__all__ = ["UpdateProgressVM"]
