"""Use case for downloading and verifying one manifest file into staging.

Flow per eligible file:

1. Touch the identity in the version cache and read the previous marker.
2. Skip without any network call when an explicit version equals the marker.
3. Otherwise fetch into ``<staged>.download`` (conditional on the previous
   tag for digest-tracked files), verify the digest against the server tag,
   then promote the file to ``<staged>`` with ``os.replace``.
4. Store the new version marker in memory.

Only transport errors (``ApiError``/``OSError``) are retried; verification
failures and cancellation propagate immediately.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from packsync.adapters.api_errors import ApiError
from packsync.domain.cancellation import CancellationToken
from packsync.domain.digests import matches_digest
from packsync.domain.errors import VerificationFailure
from packsync.domain.file_policy import FileOutcome, FilePolicy, PassCursor
from packsync.domain.ports import ProgressCallback, TransferPort, TransferResult
from packsync.domain.progress import ProgressChannel
from packsync.domain.version_cache import VersionCache
from packsync.usecases.error_mapping import map_transfer_error

log = logging.getLogger(__name__)


@dataclass
class FileFetcher:
    """Fetch one file with the skip policy, two-file staging and retries."""

    transfer: TransferPort
    cache: VersionCache
    token: CancellationToken
    channel: Optional[ProgressChannel] = None
    tries: int = 5
    retry_delay_s: float = 2.0
    forced: bool = False

    def __call__(
        self,
        policy: FilePolicy,
        *,
        cursor: PassCursor,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FileOutcome:
        self.cache.touch(policy.identity)
        last_marker = self.cache.get(policy.identity)
        outcome = FileOutcome(policy)

        if not self.forced and policy.explicit_version is not None and last_marker == policy.explicit_version:
            log.info("%s is at version %s, skipping download", policy.identity, last_marker)
            outcome.satisfied = True
            return outcome

        tries = max(1, int(self.tries))
        last_error: Optional[BaseException] = None
        for trial in range(tries):
            self.token.raise_if_cancelled()
            self._status(f"Downloading {policy.name} ({cursor.ordinal}/{cursor.total}) [try {trial + 1}]...")
            try:
                self._attempt(policy, outcome, last_marker, on_progress)
                return outcome
            except (ApiError, OSError) as exc:
                last_error = exc
                log.warning("Failed to download %s (attempt %d/%d): %s", policy.url, trial + 1, tries, exc)
                if trial + 1 < tries:
                    self._status(f"Download failed; retrying ({trial + 1})...")
                    self.token.wait(self.retry_delay_s)

        raise map_transfer_error(
            last_error, name=policy.name, identity=policy.identity, attempts=tries
        ) from last_error

    # ------------------------------------------------------------------
    def _attempt(
        self,
        policy: FilePolicy,
        outcome: FileOutcome,
        last_marker: Optional[str],
        on_progress: Optional[ProgressCallback],
    ) -> None:
        # a staged file left by an earlier pass is complete, but carries no live tag
        if not policy.digest_tracked and policy.staged_path.is_file():
            log.info("Found %s already downloaded at %s", policy.identity, policy.staged_path)
            self._record_version(policy, last_marker, None)
            outcome.fetched = True
            return

        conditional = not self.forced and policy.explicit_version is None and policy.digest_tracked
        prior_tag = last_marker if conditional else None

        policy.staged_path.parent.mkdir(parents=True, exist_ok=True)
        download_path = policy.download_path
        log.info("Downloading %s to %s...", policy.url, download_path)
        try:
            with open(download_path, "wb") as sink:
                result = self.transfer.fetch(
                    policy.url,
                    sink,
                    digest_algorithm=policy.digest_algorithm,
                    prior_entity_tag=prior_tag,
                    on_progress=on_progress,
                )
            self.token.raise_if_cancelled()

            if not result.modified:
                log.info("%s unchanged on server (tag %s), skipping", policy.identity, prior_tag)
                outcome.satisfied = True
                return

            if policy.digest_tracked:
                self._verify(policy, result)
            os.replace(download_path, policy.staged_path)
        finally:
            if download_path.exists():
                download_path.unlink()

        self._record_version(policy, last_marker, result.digest_hex)
        outcome.fetched = True

    @staticmethod
    def _verify(policy: FilePolicy, result: TransferResult) -> None:
        if not result.entity_tag:
            raise VerificationFailure(
                f"Signature for {policy.name} could not be checked",
                hint=f"{policy.url} did not report an entity tag",
                identity=policy.identity,
                step="verify",
            )
        if not matches_digest(result.entity_tag, result.digest_hex):
            raise VerificationFailure(
                f"Signature for {policy.name} did not match",
                hint=f"expected {result.entity_tag}, got {result.digest_hex}",
                identity=policy.identity,
                step="verify",
            )

    def _record_version(self, policy: FilePolicy, last_marker: Optional[str], digest_hex: Optional[str]) -> None:
        marker = digest_hex if policy.digest_tracked else None
        if policy.explicit_version is not None:
            marker = policy.explicit_version
        if policy.preserve_version and last_marker is not None:
            marker = last_marker
        self.cache.set(policy.identity, marker)

    def _status(self, text: str) -> None:
        if self.channel is not None:
            self.channel.status(text)


__all__ = ["FileFetcher"]
