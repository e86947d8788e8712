"""Background runner for one update pass.

The orchestrator is blocking and single-threaded; ``UpdateWorker`` runs it on
a daemon thread and keeps a lock-protected status snapshot that a UI thread
or a CLI loop can poll.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from packsync.domain.errors import UpdateCancelled, UpdateError
from packsync.domain.ports import UpdateType
from packsync.usecases.error_mapping import describe_error
from packsync.usecases.run_update import UpdateOrchestrator, UpdateReport, UpdateState

log = logging.getLogger(__name__)

TERMINAL_STATUSES = ("committed", "cancelled", "failed")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class UpdateJobState:
    """Mutable status of the worker's pass."""

    status: str = "queued"
    state: str = UpdateState.IDLE.value
    message: str = ""
    error_code: str = ""
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "status": self.status,
            "state": self.state,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
        if self.message:
            payload["message"] = self.message
        if self.error_code:
            payload["error_code"] = self.error_code
        return payload


class UpdateWorker:
    """Run ``orchestrator`` once on a daemon thread."""

    def __init__(
        self,
        orchestrator: UpdateOrchestrator,
        update_type: UpdateType = UpdateType.INCREMENTAL,
    ) -> None:
        self.orchestrator = orchestrator
        self.update_type = UpdateType(update_type)
        self.report: Optional[UpdateReport] = None
        self.error: Optional[BaseException] = None
        self._job = UpdateJobState()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        orchestrator.on_state_changed = self._on_state_changed

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("UpdateWorker was already started")
            self._thread = threading.Thread(target=self._run, name="packsync-update", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Request cooperative cancellation; the pass stops at its next check."""
        log.info("Cancellation requested")
        self.orchestrator.cancel()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the pass; return whether it finished."""
        if self._thread is None:
            return False
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def status(self) -> Dict[str, object]:
        with self._lock:
            return self._job.to_dict()

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._job.status in TERMINAL_STATUSES

    # ------------------------------------------------------------------
    def _run(self) -> None:
        self._set_job_fields(status="running", started_at=_utc_now_iso())
        try:
            self.report = self.orchestrator.run(self.update_type)
        except UpdateCancelled as exc:
            log.warning("Update cancelled: %s", exc)
            self.error = exc
            self._set_job_fields(status="cancelled", message=describe_error(exc), error_code=exc.code)
        except UpdateError as exc:
            log.error("Update failed: %s", describe_error(exc))
            self.error = exc
            self._set_job_fields(status="failed", message=describe_error(exc), error_code=exc.code)
        except Exception as exc:
            log.exception("Unexpected update failure")
            self.error = exc
            self._set_job_fields(status="failed", message=describe_error(exc), error_code="update.failed")
        else:
            self._set_job_fields(status="committed", message="Update complete.")
        finally:
            self._set_job_fields(finished_at=_utc_now_iso())

    def _on_state_changed(self, state: UpdateState) -> None:
        self._set_job_fields(state=state.value)

    def _set_job_fields(self, **fields: object) -> None:
        with self._lock:
            for key, value in fields.items():
                setattr(self._job, key, value)


__all__ = ["UpdateJobState", "UpdateWorker"]
