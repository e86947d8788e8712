"""Filesystem adapter implementing ``TransferPort`` for mirrors and offline media.

``file://`` URLs (or plain paths) are copied into the sink. When a digest is
requested, the content digest doubles as the entity tag, so conditional
fetches and verification behave the same way as against an HTTP server that
publishes content digests as ``ETag``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from packsync.domain.digests import matches_digest, new_digest, normalize_tag
from packsync.domain.ports import ProgressCallback, TransferPort, TransferResult

log = logging.getLogger(__name__)


def path_from_url(url: str) -> Path:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(unquote(parsed.path)))
    if parsed.scheme and len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported URL scheme for local transfer: {url}")
    return Path(unquote(url))


class LocalDirectoryTransfer(TransferPort):
    """Copy files from a local directory tree."""

    def __init__(self, chunk_size: int = 64 * 1024) -> None:
        self.chunk_size = max(1, int(chunk_size))

    def _digest_of(self, path: Path, algorithm: str) -> str:
        digest = new_digest(algorithm)
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(self.chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def fetch(
        self,
        url: str,
        sink: BinaryIO,
        *,
        digest_algorithm: Optional[str] = None,
        prior_entity_tag: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """Raises ``OSError`` when the source cannot be read."""
        source = path_from_url(url)
        total = source.stat().st_size
        prior = normalize_tag(prior_entity_tag) or None

        if prior and digest_algorithm:
            current = self._digest_of(source, digest_algorithm)
            if matches_digest(current, prior):
                log.debug("%s: unchanged (digest %s)", source, current)
                return TransferResult(modified=False, entity_tag=prior)

        digest = new_digest(digest_algorithm) if digest_algorithm else None
        received = 0
        with source.open("rb") as handle:
            for chunk in iter(lambda: handle.read(self.chunk_size), b""):
                sink.write(chunk)
                if digest is not None:
                    digest.update(chunk)
                received += len(chunk)
                if on_progress is not None:
                    on_progress(received, total)

        hex_value = digest.hexdigest() if digest is not None else None
        return TransferResult(
            modified=True,
            bytes_transferred=received,
            entity_tag=hex_value,
            digest_hex=hex_value,
        )


__all__ = ["LocalDirectoryTransfer", "path_from_url"]
