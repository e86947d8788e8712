"""Shared HTTP transport utilities for the update adapters.

This module provides a thin wrapper around ``requests.Session`` so the
transfer adapter shares one timeout policy, one ``User-Agent`` and one way of
turning non-2xx responses into typed adapter errors.

Dependencies:
    - ``requests`` for network I/O.
    - ``packsync.adapters.api_errors`` for typed transport failures.

Call context:
    - Constructed by ``packsync/adapters/transfer_http.py``.
    - Used only inside the adapter layer; use cases interact through
      ``TransferPort``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import requests
from requests import exceptions as req_exc

from packsync.adapters.api_errors import (
    ApiClientError,
    ApiError,
    ApiServerError,
    ApiTimeoutError,
    build_error_message,
    parse_error_payload,
    stringify,
)

NOT_MODIFIED = 304


@dataclass
class HttpConfig:
    """Timeout and retry configuration for adapter HTTP calls.

    Attributes:
        request_timeout_s: Connect timeout in seconds.
        download_timeout_s: Read timeout in seconds between body chunks.
        retries: Extra connection attempts per request. Whole-file retries are
            counted by the fetch use case, so this stays at 0 by default.
        user_agent: ``User-Agent`` header sent with every request.
    """
    request_timeout_s: int = 10
    download_timeout_s: int = 60
    retries: int = 0
    user_agent: str = "packsync"


class RetryingSession:
    """Shared requests wrapper with conditional GET support.

    This class is transport-only. Callers decide how to consume the body.
    """

    def __init__(self, cfg: Optional[HttpConfig] = None, *, session: Optional[requests.Session] = None) -> None:
        """Create a session.

        Args:
            cfg: Shared timeout and retry settings.
            session: Optional preconfigured session (proxies, auth, tests).

        Side Effects:
            Creates a persistent ``requests.Session`` object when none is given.
        """
        self.cfg = cfg or HttpConfig()
        self.session = session if session is not None else requests.Session()

    def _headers(self, entity_tag: Optional[str] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.cfg.user_agent, "Accept": "*/*"}
        if entity_tag:
            headers["If-None-Match"] = f'"{entity_tag}"'
        return headers

    def get(
        self,
        url: str,
        *,
        entity_tag: Optional[str] = None,
        stream: bool = True,
    ) -> requests.Response:
        """Send a GET request, conditional when ``entity_tag`` is given.

        Args:
            url: Absolute resource URL.
            entity_tag: Previously accepted tag sent as ``If-None-Match``.
            stream: Whether to stream the response body.

        Returns:
            ``requests.Response`` from the first attempt that connected.

        Raises:
            ApiTimeoutError: If all attempts fail with timeout/connection errors.

        Call Chain:
            ``HttpTransfer.fetch`` -> ``RetryingSession.get`` ->
            ``requests.Session.get``.
        """
        context = f"GET {url}"
        last_err: ApiTimeoutError | None = None
        attempts = max(1, self.cfg.retries + 1)
        for _ in range(attempts):
            try:
                return self.session.get(
                    url,
                    headers=self._headers(entity_tag),
                    timeout=(self.cfg.request_timeout_s, self.cfg.download_timeout_s),
                    stream=stream,
                    allow_redirects=True,
                )
            except (req_exc.Timeout, req_exc.ConnectionError) as exc:
                last_err = ApiTimeoutError(f"Timeout contacting {url}: {exc}", context=context)
        raise last_err

    def close(self) -> None:
        self.session.close()


def ensure_ok(resp: requests.Response, ctx: str, *, allow_not_modified: bool = False) -> None:
    """Raise typed adapter errors for unusable responses.

    Args:
        resp: HTTP response.
        ctx: Context label for error diagnostics.
        allow_not_modified: Treat ``304 Not Modified`` as success.

    Raises:
        ApiClientError: For HTTP 4xx responses.
        ApiServerError: For HTTP 5xx responses.
        ApiError: For all other non-2xx responses.
    """
    status = resp.status_code
    if 200 <= status < 300 or (allow_not_modified and status == NOT_MODIFIED):
        return
    payload = parse_error_payload(resp)
    message = build_error_message(ctx, status, payload)
    if 400 <= status < 500:
        raise ApiClientError(message, status=status, hint=stringify(payload), payload=payload, context=ctx)
    if 500 <= status < 600:
        raise ApiServerError(message, status=status, payload=payload, context=ctx)
    raise ApiError(message, status=status, payload=payload, context=ctx)


__all__ = ["HttpConfig", "NOT_MODIFIED", "RetryingSession", "ensure_ok"]
