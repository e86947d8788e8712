"""Per-file decisions resolved once per update pass.

``FilePolicy`` collects everything the download and deploy steps need about a
manifest file (identity, URL, digest, explicit version, overwrite-preserve) so
that nothing downstream re-reads scattered optional manifest fields.
``FileOutcome`` is the mutable per-pass result for that file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .digests import resolve_algorithm, staged_name_for
from .identity import resolve_destination
from .manifest import FileGroup, ManifestFile


@dataclass(frozen=True)
class FilePolicy:
    identity: str
    name: str
    url: str
    destination: Path
    staged_path: Path
    size: int
    digest_algorithm: Optional[str] = None
    explicit_version: Optional[str] = None
    preserve_version: bool = False
    is_archive: bool = False

    @property
    def download_path(self) -> Path:
        """In-progress file; only ever promoted to ``staged_path`` when complete."""
        return self.staged_path.with_name(self.staged_path.name + ".download")

    @property
    def digest_tracked(self) -> bool:
        return self.digest_algorithm is not None


def resolve_policy(
    group: FileGroup,
    file: ManifestFile,
    *,
    base_url: str,
    root_dir: Path,
    staging_dir: Path,
) -> FilePolicy:
    url = group.url_for(base_url, file)
    identity = group.identity_of(file)
    return FilePolicy(
        identity=identity,
        name=file.name,
        url=url,
        destination=resolve_destination(root_dir, identity),
        staged_path=Path(staging_dir) / staged_name_for(url),
        size=max(0, int(file.size)),
        digest_algorithm=resolve_algorithm(group.digest_algorithm),
        explicit_version=file.version,
        preserve_version=bool(file.overwrite),
        is_archive=file.is_archive,
    )


@dataclass
class FileOutcome:
    """What the download pass decided for one eligible file."""

    policy: FilePolicy
    satisfied: bool = False
    fetched: bool = False


@dataclass(frozen=True)
class PassCursor:
    """Position of a loop over the manifest, used only for status text."""

    index: int
    total: int

    @property
    def ordinal(self) -> int:
        return self.index + 1

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.index)

    def fraction(self) -> float:
        return self.index / self.total if self.total else 1.0


__all__ = ["FileOutcome", "FilePolicy", "PassCursor", "resolve_policy"]
