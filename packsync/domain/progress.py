"""Progress notifications pushed from the update worker.

The orchestrator is the single producer. It emits title, status and value
events through a ``ProgressChannel``; listeners only observe. Listeners are
called synchronously on the worker thread, so anything that renders must do
its own thread marshalling (``QueueProgressListener`` helps with that).
"""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from typing import List, Literal, Optional, Protocol, Union

ProgressKind = Literal["title", "status", "value"]


@dataclass(frozen=True)
class ProgressEvent:
    """One notification; ``payload`` is text for title/status, a float for value."""

    kind: ProgressKind
    payload: Union[str, float]


class ProgressListener(Protocol):
    def on_title_changed(self, text: str) -> None: ...
    def on_status_changed(self, text: str) -> None: ...
    def on_value_changed(self, fraction: float) -> None: ...


class QueueProgressListener:
    """Forward events into a queue that a UI thread drains at its own pace."""

    def __init__(self, target: Optional["queue.Queue[ProgressEvent]"] = None) -> None:
        self.queue: "queue.Queue[ProgressEvent]" = target if target is not None else queue.Queue()

    def on_title_changed(self, text: str) -> None:
        self.queue.put(ProgressEvent("title", text))

    def on_status_changed(self, text: str) -> None:
        self.queue.put(ProgressEvent("status", text))

    def on_value_changed(self, fraction: float) -> None:
        self.queue.put(ProgressEvent("value", fraction))

    def drain(self) -> List[ProgressEvent]:
        events: List[ProgressEvent] = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class ProgressChannel:
    """Fan out progress events and map phase fractions into a sub-window."""

    def __init__(self, listeners: Optional[List[ProgressListener]] = None) -> None:
        self._listeners: List[ProgressListener] = list(listeners or [])
        self._log = logging.getLogger(__name__)
        self.offset = 0.0
        self.size = 1.0

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_window(self, offset: float, size: float) -> None:
        """Map subsequent ``adjusted_value`` fractions into [offset, offset + size]."""
        self.offset = _clamp(offset)
        self.size = max(0.0, min(1.0 - self.offset, float(size)))

    def title(self, text: str) -> None:
        for listener in list(self._listeners):
            listener.on_title_changed(text)

    def status(self, text: str) -> None:
        self._log.debug("status: %s", text)
        for listener in list(self._listeners):
            listener.on_status_changed(text)

    def value(self, fraction: float) -> None:
        clamped = _clamp(fraction)
        for listener in list(self._listeners):
            listener.on_value_changed(clamped)

    def adjusted_value(self, fraction: float) -> None:
        self.value(_clamp(fraction) * self.size + self.offset)


__all__ = [
    "ProgressChannel",
    "ProgressEvent",
    "ProgressListener",
    "QueueProgressListener",
]
