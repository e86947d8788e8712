from __future__ import annotations

import pytest

from packsync.domain.progress import ProgressChannel, ProgressEvent, QueueProgressListener
from packsync.viewmodels.update_progress_vm import UpdateProgressVM


def test_listener_callbacks_update_snapshot() -> None:
    snapshots = []
    vm = UpdateProgressVM(on_change=snapshots.append)
    channel = ProgressChannel([vm])

    channel.title("Updating r1")
    channel.status("Downloading a.jar (1/2) [try 1]...")
    channel.value(0.42)

    assert vm.snapshot() == {
        "title": "Updating r1",
        "status": "Downloading a.jar (1/2) [try 1]...",
        "fraction": 0.42,
        "percent": "42%",
    }
    assert len(snapshots) == 3


def test_fraction_never_moves_backwards() -> None:
    vm = UpdateProgressVM()
    vm.on_value_changed(0.6)
    vm.on_value_changed(0.3)
    vm.on_value_changed(7)
    assert vm.fraction == 1.0


def test_history_is_bounded() -> None:
    vm = UpdateProgressVM(history_limit=3)
    for index in range(5):
        vm.on_status_changed(f"step {index}")
    assert vm.history == ["step 2", "step 3", "step 4"]


def test_apply_events_from_queue_listener() -> None:
    queue_listener = QueueProgressListener()
    channel = ProgressChannel([queue_listener])
    channel.title("T")
    channel.status("S")
    channel.value(0.5)

    vm = UpdateProgressVM()
    vm.apply_events(queue_listener.drain())

    assert (vm.title, vm.status, vm.fraction) == ("T", "S", 0.5)


def test_reset_clears_state() -> None:
    vm = UpdateProgressVM()
    vm.apply_events([ProgressEvent("status", "x"), ProgressEvent("value", 0.9)])
    vm.reset()
    assert vm.snapshot()["percent"] == "0%"
    assert vm.history == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, ""), ("bad", ""), (0.0, "0%"), (0.999, "99%"), (1.5, "100%"), (-1, "0%")],
)
def test_fmt_percent(value, expected) -> None:
    assert UpdateProgressVM.fmt_percent(value) == expected
