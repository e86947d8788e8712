"""Translate adapter and OS errors into update errors and display text."""

from __future__ import annotations

from typing import Optional

from packsync.adapters.api_errors import (
    ApiClientError,
    ApiError,
    ApiServerError,
    ApiTimeoutError,
)
from packsync.domain.errors import TransportFailure, UpdateError


def map_transfer_error(
    exc: BaseException,
    *,
    name: str,
    identity: Optional[str] = None,
    attempts: int = 1,
) -> TransportFailure:
    """Wrap the last fetch failure of a file into a ``TransportFailure``.

    Callers chain the adapter exception themselves (``raise ... from exc``).
    """
    return TransportFailure(
        f"Could not download {name}",
        hint=f"{_transfer_reason(exc)} (after {attempts} attempt{'s' if attempts != 1 else ''})",
        identity=identity,
        step="download",
    )


def _transfer_reason(exc: BaseException) -> str:
    if isinstance(exc, ApiTimeoutError):
        return "Connection timed out or was interrupted"
    if isinstance(exc, ApiClientError):
        status = exc.status or 0
        if status == 404:
            return "File not found on the update server (HTTP 404)"
        if status in (401, 403):
            return f"Access denied by the update server (HTTP {status})"
        return _compose("Request rejected" + (f" (HTTP {status})" if status else ""), exc.hint)
    if isinstance(exc, ApiServerError):
        return f"Update server error (HTTP {exc.status}), try again later"
    if isinstance(exc, ApiError):
        return str(exc)
    if isinstance(exc, FileNotFoundError):
        return f"Source file not found: {exc.filename or exc}"
    if isinstance(exc, OSError):
        return exc.strerror or str(exc) or exc.__class__.__name__
    return str(exc) or exc.__class__.__name__


def describe_error(exc: BaseException) -> str:
    """Render any exception raised by an update pass as one line of text."""
    if isinstance(exc, UpdateError):
        text = str(exc)
        if exc.step and exc.identity and exc.identity not in text:
            return f"{text} [{exc.step}: {exc.identity}]"
        return text
    if isinstance(exc, (ApiError, OSError)):
        return _transfer_reason(exc)
    return str(exc) or "Unexpected error."


def _compose(base: str, hint: Optional[str]) -> str:
    hint_text = (hint or "").strip()
    if hint_text and "<" not in hint_text:
        return f"{base}: {hint_text}"
    return base


__all__ = ["describe_error", "map_transfer_error"]
