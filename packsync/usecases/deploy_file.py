"""Use case for placing one staged download into the installation tree.

Plain files are copied to a temporary sibling of the destination and moved
into place with ``os.replace``. ZIP archives are extracted entry by entry into
the directory that holds the archive's identity, each entry placed the same
way. Every path written is recorded in the current ledger under the group key
of the manifest file (its identity).
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List

from packsync.domain.cancellation import CancellationToken
from packsync.domain.errors import DeployFailure, ManifestRejected, VerificationFailure
from packsync.domain.file_policy import FilePolicy
from packsync.domain.identity import normalize_relative_path, resolve_destination
from packsync.domain.ledger import InstalledPathLedger

log = logging.getLogger(__name__)

TEMP_SUFFIX = ".packsync-tmp"


@dataclass
class FileDeployer:
    """Write one staged file (or archive) below ``root_dir``."""

    root_dir: Path
    token: CancellationToken

    def __call__(self, policy: FilePolicy, ledger: InstalledPathLedger) -> int:
        """Deploy ``policy`` and return the number of files written.

        Raises:
            VerificationFailure: The staged archive is corrupt or unsafe.
            DeployFailure: Any other I/O error while writing.
        """
        try:
            if policy.is_archive:
                return self._extract(policy, ledger)
            return self._copy(policy, ledger)
        except OSError as exc:
            log.warning("Failed to deploy %s", policy.identity, exc_info=True)
            raise DeployFailure(
                f"Could not install to {policy.destination}",
                hint=exc.strerror or str(exc),
                identity=policy.identity,
                step="deploy",
            ) from exc

    # ------------------------------------------------------------------
    def _copy(self, policy: FilePolicy, ledger: InstalledPathLedger) -> int:
        if policy.preserve_version and policy.destination.exists():
            log.info("Keeping existing %s", policy.identity)
            ledger.record(policy.identity, policy.identity)
            return 0
        with open(policy.staged_path, "rb") as source:
            _place(source, policy.destination)
        ledger.record(policy.identity, policy.identity)
        log.info("Installed %s", policy.identity)
        return 1

    def _extract(self, policy: FilePolicy, ledger: InstalledPathLedger) -> int:
        parent = policy.identity.rsplit("/", 1)[0] if "/" in policy.identity else ""
        written = 0
        try:
            with zipfile.ZipFile(policy.staged_path) as archive:
                for relative, info in _safe_entries(archive, policy):
                    self.token.raise_if_cancelled()
                    entry_identity = f"{parent}/{relative}" if parent else relative
                    target = resolve_destination(self.root_dir, entry_identity)
                    if policy.preserve_version and target.exists():
                        ledger.record(policy.identity, entry_identity)
                        continue
                    with archive.open(info) as source:
                        _place(source, target)
                    ledger.record(policy.identity, entry_identity)
                    written += 1
        except (zipfile.BadZipFile, zlib.error, EOFError) as exc:
            raise VerificationFailure(
                f"Archive {policy.name} is damaged",
                hint=str(exc),
                identity=policy.identity,
                step="deploy",
            ) from exc
        log.info("Extracted %d file(s) from %s", written, policy.identity)
        return written


def _safe_entries(archive: zipfile.ZipFile, policy: FilePolicy) -> List:
    entries = []
    for info in archive.infolist():
        if info.is_dir():
            continue
        try:
            relative = normalize_relative_path(info.filename, field="archive entry")
        except ManifestRejected as exc:
            raise VerificationFailure(
                f"Archive {policy.name} contains an unsafe entry",
                hint=str(exc),
                identity=policy.identity,
                step="deploy",
            ) from exc
        mode = (info.external_attr >> 16) & 0o170000
        if mode == 0o120000:
            raise VerificationFailure(
                f"Archive {policy.name} contains a symlink entry",
                hint=info.filename,
                identity=policy.identity,
                step="deploy",
            )
        entries.append((relative, info))
    return entries


def _place(source: BinaryIO, destination: Path) -> None:
    """Copy ``source`` next to ``destination`` and swap it into place."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    temp = destination.with_name(destination.name + TEMP_SUFFIX)
    try:
        with open(temp, "wb") as target:
            shutil.copyfileobj(source, target)
        os.replace(temp, destination)
    finally:
        if temp.exists():
            temp.unlink()


__all__ = ["FileDeployer"]
