"""Domain-level error types for the update engine.

Every fatal condition raised during an update pass is an ``UpdateError`` with a
stable ``code`` so callers can branch on the kind without parsing messages.
``str(error)`` is a single human-readable line naming the file and step.
"""

from __future__ import annotations

from typing import Optional


class UpdateError(RuntimeError):
    """Base class for update pass failures (user-presentable)."""

    code = "update.failed"

    def __init__(
        self,
        message: str,
        *,
        hint: str = "",
        identity: Optional[str] = None,
        step: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.identity = identity
        self.step = step

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(self.hint)
        return ": ".join(parts)


class ManifestRejected(UpdateError):
    """The manifest cannot be used (unsupported version or invalid content)."""

    code = "update.manifest_rejected"


class TransportFailure(UpdateError):
    """Network or I/O failure while fetching a file, after all retries."""

    code = "update.transport_failed"


class VerificationFailure(UpdateError):
    """Digest or archive integrity mismatch. Never retried."""

    code = "update.verification_failed"


class DeployFailure(UpdateError):
    """I/O or permission error while writing a file into the installation."""

    code = "update.deploy_failed"


class PersistFailure(UpdateError):
    """The version cache or the installed-path ledger could not be written."""

    code = "update.persist_failed"


class UpdateCancelled(UpdateError):
    """Cooperative cancellation; nothing was committed."""

    code = "update.cancelled"

    def __init__(self, message: str = "The update has been cancelled.", **kwargs) -> None:
        super().__init__(message, **kwargs)


__all__ = [
    "DeployFailure",
    "ManifestRejected",
    "PersistFailure",
    "TransportFailure",
    "UpdateCancelled",
    "UpdateError",
    "VerificationFailure",
]
