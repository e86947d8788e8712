# packsync/app/main.py
"""Command line entry point: ``packsync --manifest ... --root ...``.

Runs one non-interactive update pass. Lifecycle messages are logged and
accepted; optional components keep their remembered (or default) selection
plus any ``--select`` ids. Ctrl+C requests cooperative cancellation.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

from ..adapters.http_client import HttpConfig, RetryingSession, ensure_ok
from ..adapters.storage_local import StateStoreLocal
from ..adapters.transfer_http import HttpTransfer
from ..adapters.transfer_local import LocalDirectoryTransfer, path_from_url
from ..domain.errors import ManifestRejected, UpdateCancelled
from ..domain.manifest import Manifest
from ..domain.ports import RecalledSelection, TransferPort, UpdateType
from ..domain.progress import ProgressChannel
from ..domain.settings import UpdaterSettings
from ..usecases.error_mapping import describe_error
from ..usecases.run_update import UpdateOrchestrator
from ..utils.logging import configure_root, level_name
from ..viewmodels.update_progress_vm import UpdateProgressVM
from .update_worker import UpdateWorker

log = logging.getLogger("packsync")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="packsync",
        description="Synchronize an installation directory with a package manifest.",
    )
    parser.add_argument("--manifest", required=True, help="Manifest JSON file path or http(s) URL.")
    parser.add_argument(
        "--base-url",
        help="Base URL (or directory) the manifest's files are resolved against. "
        "Defaults to the manifest's location.",
    )
    parser.add_argument("--root", required=True, help="Installation directory to update.")
    parser.add_argument("--update-id", help="Identifier stored as the last applied update.")
    parser.add_argument("--full", action="store_true", help="Re-fetch every file (forced update).")
    parser.add_argument("--tries", type=int, help="Download attempts per file (default 5).")
    parser.add_argument("--retry-delay-ms", type=int, help="Delay between attempts (default 2000).")
    parser.add_argument("--timeout", type=int, help="Connect timeout in seconds.")
    parser.add_argument(
        "--select",
        action="append",
        default=[],
        metavar="COMPONENT",
        help="Also install this optional component (repeatable).",
    )
    parser.add_argument("--log-level", default="INFO", help="Root log level (PACKSYNC_LOG_LEVEL overrides).")
    parser.add_argument(
        "--download-log-level",
        help="Level for per-file download logging (PACKSYNC_DOWNLOAD_LOG_LEVEL overrides).",
    )
    return parser


def _split_select(values: List[str]) -> List[str]:
    return [item.strip() for value in values for item in value.split(",") if item.strip()]


def _is_http(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def _as_base_url(location: str) -> str:
    """Turn a directory path or URL into a base URL ending in ``/``."""
    if _is_http(location) or location.startswith("file:"):
        return location if location.endswith("/") else location + "/"
    return Path(location).expanduser().resolve().as_uri() + "/"


def load_manifest(location: str, *, http_cfg: HttpConfig) -> Manifest:
    """Read and validate a manifest from a local file or an http(s) URL."""
    try:
        if _is_http(location):
            session = RetryingSession(http_cfg)
            try:
                resp = session.get(location, stream=False)
                ensure_ok(resp, f"GET {location}")
                payload: Any = resp.json()
            finally:
                session.close()
        else:
            path = path_from_url(location) if location.startswith("file:") else Path(location).expanduser()
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
    except ValueError as exc:
        raise ManifestRejected("Invalid manifest", hint=f"{location} is not valid JSON: {exc}") from exc
    return Manifest.from_payload(payload)


def default_base_url(manifest_location: str) -> str:
    if _is_http(manifest_location):
        return urljoin(manifest_location, ".")
    if manifest_location.startswith("file:"):
        return urljoin(manifest_location, ".")
    return Path(manifest_location).expanduser().resolve().parent.as_uri() + "/"


def build_transfer(base_url: str, settings: UpdaterSettings, http_cfg: HttpConfig) -> TransferPort:
    if _is_http(base_url):
        return HttpTransfer(RetryingSession(http_cfg), chunk_size=settings.chunk_size)
    return LocalDirectoryTransfer(chunk_size=settings.chunk_size)


def build_settings(args: argparse.Namespace) -> UpdaterSettings:
    overrides: Dict[str, Any] = {}
    if args.tries is not None:
        overrides["download_tries"] = args.tries
    if args.retry_delay_ms is not None:
        overrides["retry_delay_ms"] = args.retry_delay_ms
    if args.timeout is not None:
        overrides["request_timeout_s"] = args.timeout
    return UpdaterSettings.from_dict(overrides)


class _ConsoleReporter:
    """Print status lines to stderr when the status text changes."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stderr
        self._last_status = ""

    def __call__(self, snapshot: Dict[str, object]) -> None:
        status = str(snapshot.get("status") or "")
        if status and status != self._last_status:
            self._last_status = status
            print(f"[{snapshot.get('percent', '')}] {status}", file=self.stream)


def run(args: argparse.Namespace) -> int:
    settings = build_settings(args)
    http_cfg = HttpConfig(
        request_timeout_s=settings.request_timeout_s,
        download_timeout_s=settings.download_timeout_s,
    )
    manifest = load_manifest(args.manifest, http_cfg=http_cfg)
    base_url = _as_base_url(args.base_url) if args.base_url else default_base_url(args.manifest)
    root_dir = Path(args.root).expanduser().resolve()
    root_dir.mkdir(parents=True, exist_ok=True)

    progress = UpdateProgressVM(on_change=_ConsoleReporter())
    orchestrator = UpdateOrchestrator(
        manifest,
        base_url=base_url,
        root_dir=root_dir,
        transfer=build_transfer(base_url, settings, http_cfg),
        state_store=StateStoreLocal(str(root_dir), settings),
        selector=RecalledSelection(_split_select(args.select)),
        channel=ProgressChannel([progress]),
        settings=settings,
        update_id=args.update_id,
    )
    worker = UpdateWorker(orchestrator, UpdateType.FULL if args.full else UpdateType.INCREMENTAL)
    log.info("Updating %s from %s", root_dir, base_url)
    worker.start()
    try:
        while not worker.join(0.2):
            pass
    except KeyboardInterrupt:
        worker.cancel()
        worker.join()

    status = worker.status()
    if status["status"] == "committed":
        report = worker.report
        if report is not None:
            log.info(
                "Done: %d downloaded, %d unchanged, %d removed",
                len(report.fetched),
                len(report.satisfied),
                len(report.removed),
            )
        return EXIT_OK
    print(f"Update {status['status']}: {status.get('message', '')}", file=sys.stderr)
    if isinstance(worker.error, UpdateCancelled):
        return EXIT_CANCELLED
    return EXIT_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    level = configure_root(args.log_level, args.download_log_level)
    log.debug("Log level %s", level_name(level))
    try:
        return run(args)
    except ValueError as exc:
        parser.error(str(exc))
    except ManifestRejected as exc:
        print(f"Manifest rejected: {describe_error(exc)}", file=sys.stderr)
        return EXIT_USAGE
    except (OSError, RuntimeError) as exc:
        print(f"Could not start update: {describe_error(exc)}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
