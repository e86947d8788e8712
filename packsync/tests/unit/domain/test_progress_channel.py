from __future__ import annotations

import pytest

from packsync.domain.cancellation import CancellationToken
from packsync.domain.errors import UpdateCancelled
from packsync.domain.progress import ProgressChannel, ProgressEvent, QueueProgressListener


class _RecordingListener:
    def __init__(self) -> None:
        self.titles = []
        self.statuses = []
        self.values = []

    def on_title_changed(self, text: str) -> None:
        self.titles.append(text)

    def on_status_changed(self, text: str) -> None:
        self.statuses.append(text)

    def on_value_changed(self, fraction: float) -> None:
        self.values.append(fraction)


def test_channel_fans_out_to_every_listener() -> None:
    first, second = _RecordingListener(), _RecordingListener()
    channel = ProgressChannel([first])
    channel.add_listener(second)

    channel.title("Updating")
    channel.status("Working...")
    channel.value(0.5)

    for listener in (first, second):
        assert listener.titles == ["Updating"]
        assert listener.statuses == ["Working..."]
        assert listener.values == [0.5]

    channel.remove_listener(second)
    channel.status("Later")
    assert second.statuses == ["Working..."]


def test_value_is_clamped() -> None:
    listener = _RecordingListener()
    channel = ProgressChannel([listener])
    channel.value(-1)
    channel.value(3)
    assert listener.values == [0.0, 1.0]


def test_adjusted_value_maps_into_the_window() -> None:
    listener = _RecordingListener()
    channel = ProgressChannel([listener])

    channel.set_window(0.0, 0.95)
    channel.adjusted_value(0.0)
    channel.adjusted_value(1.0)
    channel.set_window(0.95, 0.05)
    channel.adjusted_value(0.5)
    channel.adjusted_value(1.0)

    assert listener.values == pytest.approx([0.0, 0.95, 0.975, 1.0])


def test_window_never_extends_past_one() -> None:
    channel = ProgressChannel()
    channel.set_window(0.9, 0.5)
    assert channel.offset == pytest.approx(0.9)
    assert channel.size == pytest.approx(0.1)


def test_queue_listener_drains_in_order() -> None:
    listener = QueueProgressListener()
    channel = ProgressChannel([listener])
    channel.title("T")
    channel.value(0.25)

    assert listener.drain() == [ProgressEvent("title", "T"), ProgressEvent("value", 0.25)]
    assert listener.drain() == []


def test_cancellation_token() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()
    token.wait(0)
    assert not token.cancelled

    token.cancel()
    assert token.cancelled
    with pytest.raises(UpdateCancelled):
        token.raise_if_cancelled()
    with pytest.raises(UpdateCancelled):
        token.wait(5)
