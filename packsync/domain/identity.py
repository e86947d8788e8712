"""Identity derivation for cache and ledger keys.

An identity is the POSIX-style path of a file relative to the installation
root. It is the only key used by the version cache and the installed-path
ledger, so it stays stable when the manifest regroups files between versions.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any

from .errors import ManifestRejected


def normalize_relative_path(value: Any, *, field: str = "path", allow_empty: bool = False) -> str:
    """Canonicalize a relative path and reject values that escape the root."""
    text = str(value or "").strip().replace("\\", "/")
    if text.startswith("/") or PurePosixPath(text).is_absolute() or (len(text) > 1 and text[1] == ":"):
        raise ManifestRejected(f"Invalid {field}", hint=f"{field} must be relative, got '{value}'.")
    parts = [part for part in text.split("/") if part not in {"", "."}]
    if ".." in parts:
        raise ManifestRejected(f"Invalid {field}", hint=f"{field} must not contain '..', got '{value}'.")
    if not parts:
        if allow_empty:
            return ""
        raise ManifestRejected(f"Invalid {field}", hint=f"{field} must not be empty.")
    return "/".join(parts)


def derive_identity(dest_prefix: str, relative_path: str) -> str:
    """Return the install-root-relative identity of a file in a group."""
    prefix = normalize_relative_path(dest_prefix, field="group destination", allow_empty=True)
    path = normalize_relative_path(relative_path, field="file path")
    return f"{prefix}/{path}" if prefix else path


def resolve_destination(root_dir: Path, identity: str) -> Path:
    """Map an identity onto a filesystem path below ``root_dir``."""
    return Path(root_dir).joinpath(*identity.split("/"))


__all__ = ["derive_identity", "normalize_relative_path", "resolve_destination"]
