from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Iterable, Optional, Protocol, Set

from .ledger import InstalledPathLedger
from .manifest import Component, Message
from .version_cache import VersionCache

Identity = str
ProgressCallback = Callable[[int, Optional[int]], None]  # (bytes_so_far, total_if_known)


class UpdateType(str, enum.Enum):
    """INCREMENTAL honours cached versions; FULL re-fetches every eligible file."""

    INCREMENTAL = "incremental"
    FULL = "full"


# ---- Transfer result ----
@dataclass(frozen=True)
class TransferResult:
    """Outcome of one fetch.

    ``modified`` is False when a conditional request answered "unchanged"; no
    body was written to the sink in that case.
    """

    modified: bool
    bytes_transferred: int = 0
    entity_tag: Optional[str] = None
    digest_hex: Optional[str] = None


# ---- Ports (Hexagonal boundaries) ----
class TransferPort(Protocol):
    """Fetch one remote resource into a byte sink.

    Raises a transport error (``ApiError`` subclass or ``OSError``) on failure.
    """

    def fetch(
        self,
        url: str,
        sink: BinaryIO,
        *,
        digest_algorithm: Optional[str] = None,
        prior_entity_tag: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransferResult: ...


class StatePort(Protocol):
    """Persistence for the version cache and the installed-path ledger."""

    def load_version_cache(self) -> VersionCache: ...
    def save_version_cache(self, cache: VersionCache) -> None: ...
    def load_ledger(self) -> InstalledPathLedger: ...
    def save_ledger(self, ledger: InstalledPathLedger) -> None: ...


class ComponentSelector(Protocol):
    """Ask which optional components to install; may block the worker."""

    def select(
        self, components: Iterable[Component], recalled: Dict[str, bool]
    ) -> Set[str]: ...  # ids of the chosen optional components


class MessagePresenter(Protocol):
    """Show one lifecycle message; False means the user declined."""

    def show(self, message: Message, base_url: str) -> bool: ...


class RecalledSelection:
    """Selector for unattended runs: keep remembered or default choices."""

    def __init__(self, extra: Iterable[str] = ()) -> None:
        self.extra = set(extra)

    def select(self, components: Iterable[Component], recalled: Dict[str, bool]) -> Set[str]:
        components = list(components)
        chosen = {component.id for component in components if recalled.get(component.id, component.selected)}
        known = {component.id for component in components}
        return chosen | (self.extra & known)
