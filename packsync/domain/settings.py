from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping

from .errors import ManifestRejected
from .identity import normalize_relative_path


@dataclass(frozen=True)
class UpdaterSettings:
    """Typed runtime settings of one update pass."""

    download_tries: int = 5
    retry_delay_ms: int = 2000
    request_timeout_s: int = 10
    download_timeout_s: int = 60
    chunk_size: int = 64 * 1024
    staging_dir_name: str = "_download"
    cache_filename: str = "update_cache.json"
    ledger_filename: str = "installed_paths.json"

    @property
    def retry_delay_s(self) -> float:
        return self.retry_delay_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UpdaterSettings":
        """Build settings from flat keys, rejecting unknown ones."""
        if not isinstance(payload, Mapping):
            raise ValueError("Settings payload must be a mapping of flat keys.")

        unknown = set(payload.keys()) - set(cls.__annotations__.keys())
        if unknown:
            raise ValueError(f"Unsupported settings keys: {', '.join(sorted(str(key) for key in unknown))}")

        updates: Dict[str, Any] = {}
        for key in ("download_tries", "chunk_size"):
            if key in payload:
                updates[key] = _coerce_int(key, payload[key], minimum=1)
        for key in ("retry_delay_ms", "request_timeout_s", "download_timeout_s"):
            if key in payload:
                updates[key] = _coerce_int(key, payload[key], minimum=0)
        for key in ("staging_dir_name", "cache_filename", "ledger_filename"):
            if key in payload:
                updates[key] = _coerce_name(key, payload[key])
        return replace(cls(), **updates)


def _coerce_int(name: str, value: Any, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer.")
    if isinstance(value, (int, float)):
        coerced = int(value)
    elif isinstance(value, str) and value.strip():
        try:
            coerced = int(value.strip())
        except ValueError as exc:
            raise ValueError(f"{name} must be an integer.") from exc
    else:
        raise ValueError(f"{name} must be an integer.")
    if coerced < minimum:
        raise ValueError(f"{name} must be >= {minimum}.")
    return coerced


def _coerce_name(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string.")
    try:
        normalized = normalize_relative_path(value, field=name)
    except ManifestRejected as exc:
        raise ValueError(f"{name} must be a plain file name.") from exc
    if "/" in normalized:
        raise ValueError(f"{name} must be a plain file name.")
    return normalized


__all__ = ["UpdaterSettings"]
