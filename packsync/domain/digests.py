"""Digest helpers shared by the transfer adapters and the fetch use case."""

from __future__ import annotations

import hashlib
from typing import Optional

from .errors import ManifestRejected


def resolve_algorithm(name: Optional[str]) -> Optional[str]:
    """Map a manifest digest name (``"SHA-1"``, ``"md5"``) to a hashlib name.

    Returns ``None`` when no algorithm is configured.

    Raises:
        ManifestRejected: If the algorithm is not available in ``hashlib``.
    """
    if name is None:
        return None
    text = str(name).strip()
    if not text:
        return None
    normalized = text.lower().replace("-", "")
    if normalized not in hashlib.algorithms_available:
        raise ManifestRejected(
            "Unknown digest algorithm",
            hint=f"'{name}' is not supported by this installation.",
        )
    return normalized


def new_digest(name: str):
    return hashlib.new(resolve_algorithm(name) or name)


def normalize_tag(value: Optional[str]) -> str:
    """Strip HTTP entity-tag decoration (``W/`` prefix and quotes)."""
    text = str(value or "").strip()
    if text.startswith("W/"):
        text = text[2:]
    return text.strip('"').strip()


def matches_digest(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two hex digests ignoring case and leading zeros."""
    if left is None or right is None:
        return False
    a = normalize_tag(left).lower().lstrip("0")
    b = normalize_tag(right).lower().lstrip("0")
    return a == b


def staged_name_for(url: str) -> str:
    """Return the staging file name used for a download URL."""
    return "_" + hashlib.md5(url.encode("utf-8")).hexdigest()


__all__ = [
    "matches_digest",
    "new_digest",
    "normalize_tag",
    "resolve_algorithm",
    "staged_name_for",
]
