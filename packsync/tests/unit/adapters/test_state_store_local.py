from __future__ import annotations

import json
from pathlib import Path

import pytest

from packsync.adapters.storage_local import StateStoreLocal
from packsync.domain.errors import PersistFailure
from packsync.domain.ledger import InstalledPathLedger
from packsync.domain.settings import UpdaterSettings


def test_missing_files_load_as_empty_state(tmp_path: Path) -> None:
    store = StateStoreLocal(str(tmp_path))
    assert store.load_version_cache().to_dict()["files"] == {}
    assert len(store.load_ledger()) == 0


def test_loaded_cache_persists_through_its_store(tmp_path: Path) -> None:
    store = StateStoreLocal(str(tmp_path))
    cache = store.load_version_cache()
    cache.set("lib/a.jar", "abc")
    cache.persist()

    payload = json.loads((tmp_path / "update_cache.json").read_text(encoding="utf-8"))
    assert payload["files"] == {"lib/a.jar": "abc"}
    assert store.load_version_cache().get("lib/a.jar") == "abc"
    assert not (tmp_path / "update_cache.json.tmp").exists()


def test_ledger_round_trip_with_custom_filename(tmp_path: Path) -> None:
    store = StateStoreLocal(str(tmp_path), UpdaterSettings(ledger_filename="paths.json"))
    store.save_ledger(InstalledPathLedger({"pack.zip": ["data/a.txt"]}))

    assert (tmp_path / "paths.json").exists()
    assert store.load_ledger().group("pack.zip") == {"data/a.txt"}


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_corrupt_state_is_ignored(tmp_path: Path, content: str, caplog) -> None:
    (tmp_path / "installed_paths.json").write_text(content, encoding="utf-8")
    store = StateStoreLocal(str(tmp_path))

    with caplog.at_level("WARNING"):
        ledger = store.load_ledger()

    assert len(ledger) == 0
    assert "installed_paths.json" in caplog.text


def test_write_failure_raises_persist_failure(tmp_path: Path) -> None:
    # a directory in place of the ledger file makes the final rename fail
    (tmp_path / "installed_paths.json").mkdir()
    store = StateStoreLocal(str(tmp_path))

    with pytest.raises(PersistFailure) as excinfo:
        store.save_ledger(InstalledPathLedger({"a": ["a"]}))

    assert excinfo.value.step == "commit"
    assert not (tmp_path / "installed_paths.json.tmp").exists()
