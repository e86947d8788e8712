from __future__ import annotations

from typing import Any, Optional


class ApiError(RuntimeError):
    """Base class for transfer adapter failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        hint: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.hint = hint
        self.payload = payload
        self.context = context


class ApiClientError(ApiError):
    """HTTP 4xx from the update server (missing file, forbidden, ...)."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        hint: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, status=status, hint=hint, payload=payload, context=context)


class ApiServerError(ApiError):
    """HTTP 5xx from the update server."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, status=status, payload=payload, context=context)


class ApiTimeoutError(ApiError):
    """Timeout, dropped connection or truncated body."""

    def __init__(self, message: str, *, context: Optional[str] = None) -> None:
        super().__init__(message, context=context)


def parse_error_payload(resp: Any) -> Any:
    """Best-effort extraction of an error body without raising.

    Error bodies of file servers are usually short HTML or text; JSON is used
    when the server declares it.
    """
    headers = getattr(resp, "headers", None) or {}
    content_type = str(headers.get("Content-Type", "")).lower()
    if "json" in content_type:
        try:
            return resp.json()
        except ValueError:
            pass
    snippet = getattr(resp, "text", "") or ""
    return snippet[:400] or None


def build_error_message(ctx: str, status: int, payload: Any) -> str:
    detail = first_string(payload)
    if detail and len(detail) <= 120 and "<" not in detail:
        return f"{ctx}: {detail} (HTTP {status})"
    return f"{ctx}: HTTP {status}"


def first_string(payload: Any) -> Optional[str]:
    if isinstance(payload, str):
        text = payload.strip()
        return text or None
    if isinstance(payload, dict):
        for key in ("detail", "message", "error", "title"):
            candidate = first_string(payload.get(key))
            if candidate:
                return candidate
    if isinstance(payload, list):
        for item in payload:
            candidate = first_string(item)
            if candidate:
                return candidate
    return None


def stringify(data: Any, *, limit: int = 200) -> Optional[str]:
    if data is None:
        return None
    if isinstance(data, dict):
        pairs = [f"{key}={stringify(value, limit=limit)}" for key, value in list(data.items())[:4] if value]
        joined = ", ".join(pairs)
        return joined[:limit] or None
    if isinstance(data, list):
        parts = [text for text in (stringify(item, limit=limit) for item in data[:3]) if text]
        joined = "; ".join(parts)
        return joined[:limit] or None
    text = str(data).strip()
    return text[:limit] if text else None


__all__ = [
    "ApiClientError",
    "ApiError",
    "ApiServerError",
    "ApiTimeoutError",
    "build_error_message",
    "first_string",
    "parse_error_payload",
    "stringify",
]
