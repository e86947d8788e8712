"""Cooperative cancellation for the update worker."""

from __future__ import annotations

import threading

from .errors import UpdateCancelled


class CancellationToken:
    """Thread-safe flag polled by the worker at loop boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UpdateCancelled()

    def wait(self, seconds: float) -> None:
        """Sleep up to ``seconds``; raise ``UpdateCancelled`` if cancelled meanwhile."""
        if seconds > 0 and self._event.wait(seconds):
            raise UpdateCancelled()
        self.raise_if_cancelled()


__all__ = ["CancellationToken"]
