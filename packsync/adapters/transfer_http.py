"""HTTP adapter implementing ``TransferPort``.

Streams one resource into a caller-provided sink, hashing while writing, and
honours ``If-None-Match``/``304 Not Modified`` for digest-tracked files.

Dependencies:
    - ``RetryingSession``/``HttpConfig`` for shared HTTP policy.
    - ``packsync.domain.digests`` for the incremental digest and tag parsing.

Call context:
    - Invoked by ``packsync/usecases/fetch_file.py`` through ``TransferPort``.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Optional

from requests import exceptions as req_exc

from packsync.adapters.api_errors import ApiTimeoutError
from packsync.adapters.http_client import NOT_MODIFIED, HttpConfig, RetryingSession, ensure_ok
from packsync.domain.digests import new_digest, normalize_tag
from packsync.domain.ports import ProgressCallback, TransferPort, TransferResult

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class HttpTransfer(TransferPort):
    """Streaming HTTP download transport."""

    def __init__(
        self,
        session: Optional[RetryingSession] = None,
        *,
        cfg: Optional[HttpConfig] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.session = session or RetryingSession(cfg)
        self.chunk_size = max(1, int(chunk_size))

    def fetch(
        self,
        url: str,
        sink: BinaryIO,
        *,
        digest_algorithm: Optional[str] = None,
        prior_entity_tag: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        """Download ``url`` into ``sink``.

        Returns:
            ``TransferResult``; ``modified`` is False on ``304``.

        Raises:
            ApiTimeoutError: On timeouts, dropped connections or short bodies.
            ApiClientError: For HTTP 4xx responses.
            ApiServerError: For HTTP 5xx responses.
        """
        ctx = f"GET {url}"
        prior = normalize_tag(prior_entity_tag) or None
        resp = self.session.get(url, entity_tag=prior, stream=True)
        try:
            ensure_ok(resp, ctx, allow_not_modified=prior is not None)
            if resp.status_code == NOT_MODIFIED:
                log.debug("%s: not modified (tag %s)", url, prior)
                return TransferResult(modified=False, entity_tag=prior)

            total = _content_length(resp.headers.get("Content-Length"))
            digest = new_digest(digest_algorithm) if digest_algorithm else None
            received = 0
            try:
                for chunk in resp.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    sink.write(chunk)
                    if digest is not None:
                        digest.update(chunk)
                    received += len(chunk)
                    if on_progress is not None:
                        on_progress(received, total)
            except (req_exc.ChunkedEncodingError, req_exc.ConnectionError, req_exc.Timeout) as exc:
                raise ApiTimeoutError(f"Connection lost while reading {url}: {exc}", context=ctx) from exc

            if total is not None and received < total:
                raise ApiTimeoutError(
                    f"Incomplete download of {url}: got {received} of {total} bytes",
                    context=ctx,
                )
            return TransferResult(
                modified=True,
                bytes_transferred=received,
                entity_tag=normalize_tag(resp.headers.get("ETag")) or None,
                digest_hex=digest.hexdigest() if digest is not None else None,
            )
        finally:
            resp.close()


def _content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        length = int(str(value).strip())
    except ValueError:
        return None
    return length if length >= 0 else None


__all__ = ["HttpTransfer"]
