from __future__ import annotations

import logging
import os
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"
_LEVEL_ENV_VARS = ("PACKSYNC_LOG_LEVEL",)
_DEBUG_FLAGS = ("PACKSYNC_DEBUG",)
_DOWNLOAD_LEVEL_ENV = "PACKSYNC_DOWNLOAD_LOG_LEVEL"

# per-file fetch, retry and transfer chatter
DOWNLOAD_LOGGERS = (
    "packsync.usecases.fetch_file",
    "packsync.adapters.transfer_http",
    "packsync.adapters.transfer_local",
)


def _coerce_level(value: Optional[str], fallback: int) -> int:
    if not value:
        return fallback
    text = value.strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    candidate = logging.getLevelName(text.upper())
    return candidate if isinstance(candidate, int) else fallback


def _env_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_env_level() -> Optional[int]:
    for var in _LEVEL_ENV_VARS:
        value = os.getenv(var)
        if value:
            return _coerce_level(value, logging.INFO)
    if any(_env_truthy(os.getenv(flag)) for flag in _DEBUG_FLAGS):
        return logging.DEBUG
    return None


def _resolve_download_level(requested: int | str | None, effective: int) -> int:
    env_value = os.getenv(_DOWNLOAD_LEVEL_ENV)
    if env_value:
        return _coerce_level(env_value, effective)
    if requested is None:
        return logging.NOTSET
    if isinstance(requested, str):
        return _coerce_level(requested, effective)
    return int(requested)


def configure_root(
    default_level: int | str = logging.INFO,
    download_level: int | str | None = None,
) -> int:
    """
    Configure the root logger with a compact format.

    Environment overrides:
      - PACKSYNC_LOG_LEVEL: explicit log level (name or number)
      - PACKSYNC_DEBUG: truthy -> DEBUG
      - PACKSYNC_DOWNLOAD_LOG_LEVEL: level for the download loggers only

    The download loggers (see DOWNLOAD_LOGGERS) inherit the root level unless
    ``download_level`` or the environment gives them their own.
    """
    fallback = (
        _coerce_level(default_level, logging.INFO)
        if isinstance(default_level, str)
        else int(default_level)
    )
    effective = _resolve_env_level() or fallback

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_DEFAULT_FORMAT, datefmt=_DEFAULT_DATEFMT)
    root.setLevel(effective)
    # urllib3 logs every connection at DEBUG; keep it one level quieter
    logging.getLogger("urllib3").setLevel(max(effective, logging.INFO))

    downloads = _resolve_download_level(download_level, effective)
    for name in DOWNLOAD_LOGGERS:
        logging.getLogger(name).setLevel(downloads)
    return effective


def level_name(level: int) -> str:
    """Return logging level name for diagnostics."""
    return logging.getLevelName(level)


__all__ = ["DOWNLOAD_LOGGERS", "configure_root", "level_name"]
