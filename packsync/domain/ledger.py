"""Installed-path ledger: what an installation pass actually placed on disk.

Paths are grouped under a logical key. A plain file is its own group; an
archive's group holds every path extracted from it, so an archive left
unchanged in a later pass can be carried forward as a unit.

The ledger is the only source of truth for deleting files: manifests from
different versions may simply not mention removed files.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Set, Tuple

FORMAT_VERSION = 1


class InstalledPathLedger:
    """Mapping of group key -> set of install-root-relative paths."""

    def __init__(self, groups: Mapping[str, Iterable[str]] | None = None) -> None:
        self._groups: Dict[str, Set[str]] = {}
        for key, paths in (groups or {}).items():
            for path in paths:
                self.record(key, path)

    def record(self, group_key: str, path: str) -> None:
        self._groups.setdefault(group_key, set()).add(path)

    def has(self, path: str) -> bool:
        return any(path in paths for paths in self._groups.values())

    def has_group(self, group_key: str) -> bool:
        return group_key in self._groups

    def group(self, group_key: str) -> Set[str]:
        return set(self._groups.get(group_key, ()))

    def copy_group_from(self, other: "InstalledPathLedger", group_key: str) -> bool:
        """Carry ``group_key`` forward from ``other``; return whether it existed."""
        if not other.has_group(group_key):
            return False
        for path in other.group(group_key):
            self.record(group_key, path)
        return True

    def paths(self) -> Set[str]:
        result: Set[str] = set()
        for paths in self._groups.values():
            result |= paths
        return result

    def entries(self) -> Iterator[Tuple[str, Set[str]]]:
        for key in sorted(self._groups):
            yield key, set(self._groups[key])

    def orphans_relative_to(self, current: "InstalledPathLedger") -> List[str]:
        """Paths recorded here that ``current`` no longer contains, sorted."""
        kept = current.paths()
        return sorted(path for path in self.paths() if path not in kept)

    def __len__(self) -> int:
        return len(self.paths())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InstalledPathLedger):
            return NotImplemented
        return self._groups == other._groups

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": FORMAT_VERSION,
            "groups": {key: sorted(paths) for key, paths in self.entries()},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InstalledPathLedger":
        raw = payload.get("groups") if isinstance(payload.get("groups"), Mapping) else {}
        groups = {
            str(key): [str(path) for path in paths if isinstance(path, str)]
            for key, paths in raw.items()
            if isinstance(paths, list)
        }
        return cls(groups)


__all__ = ["InstalledPathLedger"]
