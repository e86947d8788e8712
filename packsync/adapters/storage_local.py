from __future__ import annotations
import json, logging, os
from typing import Any, Dict, Optional

from packsync.domain.errors import PersistFailure
from packsync.domain.ledger import InstalledPathLedger
from packsync.domain.ports import StatePort
from packsync.domain.settings import UpdaterSettings
from packsync.domain.version_cache import VersionCache

log = logging.getLogger(__name__)


class StateStoreLocal(StatePort):
    """Version cache and installed-path ledger as JSON files in the install root."""

    def __init__(self, root_dir: str = ".", settings: Optional[UpdaterSettings] = None) -> None:
        self.root = str(root_dir)
        self.settings = settings or UpdaterSettings()

    @property
    def cache_path(self) -> str:
        return os.path.join(self.root, self.settings.cache_filename)

    @property
    def ledger_path(self) -> str:
        return os.path.join(self.root, self.settings.ledger_filename)

    # ---- Version cache ----
    def load_version_cache(self) -> VersionCache:
        payload = self._read_json(self.cache_path)
        cache = VersionCache.from_dict(payload) if payload is not None else VersionCache()
        cache.bind(self.save_version_cache)
        return cache

    def save_version_cache(self, cache: VersionCache) -> None:
        self._write_json(self.cache_path, cache.to_dict())

    # ---- Ledger ----
    def load_ledger(self) -> InstalledPathLedger:
        payload = self._read_json(self.ledger_path)
        return InstalledPathLedger.from_dict(payload) if payload is not None else InstalledPathLedger()

    def save_ledger(self, ledger: InstalledPathLedger) -> None:
        self._write_json(self.ledger_path, ledger.to_dict())

    # ------------------------------------------------------------------
    @staticmethod
    def _read_json(path: str) -> Optional[Dict[str, Any]]:
        """Return the decoded object, or None when missing or unreadable."""
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable state file %s: %s", path, exc)
            return None
        if not isinstance(data, dict):
            log.warning("Ignoring state file %s: top level is not an object", path)
            return None
        return data

    @staticmethod
    def _write_json(path: str, payload: Dict[str, Any]) -> None:
        # write a sibling first so readers only ever see the old or the new file
        tmp = f"{path}.tmp"
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError as exc:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise PersistFailure(
                "Could not save update state",
                hint=f"{os.path.basename(path)}: {exc}",
                step="commit",
            ) from exc
        log.debug("Saved %s", path)


__all__ = ["StateStoreLocal"]
