"""Per-file version cache for one installation directory.

The cache maps an identity to the last version marker applied for it (an
explicit version string or a verified digest hex), and also remembers the last
applied update id, optional-component choices and acknowledged messages.

It is loaded once at the start of an update pass and only mutated in memory;
``persist`` writes it back through the store it was loaded from.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Set

from .manifest import Message

FORMAT_VERSION = 1


class VersionCache:
    """In-memory view of the persisted version cache."""

    def __init__(
        self,
        *,
        files: Optional[Mapping[str, str]] = None,
        components: Optional[Mapping[str, bool]] = None,
        messages: Optional[Set[str]] = None,
        last_update_id: Optional[str] = None,
        writer: Optional[Callable[["VersionCache"], None]] = None,
    ) -> None:
        self._files: Dict[str, str] = dict(files or {})
        self._components: Dict[str, bool] = dict(components or {})
        self._messages: Set[str] = set(messages or ())
        self._touched: Set[str] = set()
        self.last_update_id = last_update_id
        self._writer = writer

    # ---- file versions ----
    def get(self, identity: str) -> Optional[str]:
        return self._files.get(identity)

    def set(self, identity: str, marker: Optional[str]) -> None:
        """Store a marker, or clear the entry when ``marker`` is ``None``."""
        if marker is None:
            self._files.pop(identity, None)
        else:
            self._files[identity] = str(marker)

    def touch(self, identity: str) -> None:
        """Mark an identity as still relevant in the current pass."""
        self._touched.add(identity)

    def prune_untouched(self) -> int:
        """Drop file entries nobody touched this pass; return how many."""
        stale = [identity for identity in self._files if identity not in self._touched]
        for identity in stale:
            del self._files[identity]
        return len(stale)

    # ---- component selections ----
    def recall_component_selection(self, component_id: str) -> Optional[bool]:
        return self._components.get(component_id)

    def store_component_selection(self, component_id: str, selected: bool) -> None:
        self._components[component_id] = bool(selected)

    # ---- messages ----
    def mark_message(self, message: Message) -> bool:
        """Return whether ``message`` should be shown, recording one-time ones."""
        if not message.once:
            return True
        if message.id in self._messages:
            return False
        self._messages.add(message.id)
        return True

    # ---- update id ----
    def set_last_update_id(self, update_id: Optional[str]) -> None:
        self.last_update_id = update_id

    # ---- persistence ----
    def persist(self) -> None:
        if self._writer is None:
            raise RuntimeError("VersionCache has no bound store to persist to")
        self._writer(self)

    def bind(self, writer: Callable[["VersionCache"], None]) -> None:
        self._writer = writer

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": FORMAT_VERSION,
            "last_update_id": self.last_update_id,
            "files": dict(sorted(self._files.items())),
            "components": dict(sorted(self._components.items())),
            "messages": sorted(self._messages),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "VersionCache":
        """Hydrate from persisted JSON, ignoring malformed entries."""
        files_raw = payload.get("files") if isinstance(payload.get("files"), Mapping) else {}
        components_raw = payload.get("components") if isinstance(payload.get("components"), Mapping) else {}
        messages_raw = payload.get("messages") if isinstance(payload.get("messages"), list) else []
        last = payload.get("last_update_id")
        return cls(
            files={str(k): str(v) for k, v in files_raw.items() if isinstance(v, str)},
            components={str(k): bool(v) for k, v in components_raw.items()},
            messages={str(item) for item in messages_raw},
            last_update_id=str(last) if last is not None else None,
        )


__all__ = ["VersionCache"]
