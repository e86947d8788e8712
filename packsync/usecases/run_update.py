"""Orchestrator driving one update pass of an installation directory.

The pass is a fixed sequence of states::

    INITIALIZE -> COMPONENT_SELECTION -> PRE_DOWNLOAD -> DOWNLOADING
    -> POST_DOWNLOAD -> PRE_INSTALL -> DEPLOYING -> POST_INSTALL
    -> CLEANUP -> FINALIZE -> COMMITTED

Any exception moves it to ``ABORTED``. The version cache and the installed-path
ledger are read once at the start and written only in the commit step, so an
aborted pass leaves both files exactly as they were.
"""

from __future__ import annotations

import enum
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from packsync.domain.cancellation import CancellationToken
from packsync.domain.environment import Environment
from packsync.domain.errors import DeployFailure, ManifestRejected, UpdateCancelled
from packsync.domain.file_policy import FileOutcome, FilePolicy, PassCursor, resolve_policy
from packsync.domain.identity import normalize_relative_path, resolve_destination
from packsync.domain.ledger import InstalledPathLedger
from packsync.domain.manifest import Manifest, Phase
from packsync.domain.ports import (
    ComponentSelector,
    MessagePresenter,
    ProgressCallback,
    StatePort,
    TransferPort,
    UpdateType,
)
from packsync.domain.progress import ProgressChannel
from packsync.domain.settings import UpdaterSettings
from packsync.domain.version_cache import VersionCache
from packsync.usecases.deploy_file import FileDeployer
from packsync.usecases.fetch_file import FileFetcher

log = logging.getLogger(__name__)

DOWNLOAD_WINDOW = (0.0, 0.95)
INSTALL_WINDOW = (0.95, 0.05)


class UpdateState(str, enum.Enum):
    IDLE = "idle"
    INITIALIZE = "initialize"
    COMPONENT_SELECTION = "component_selection"
    PRE_DOWNLOAD = "pre_download"
    DOWNLOADING = "downloading"
    POST_DOWNLOAD = "post_download"
    PRE_INSTALL = "pre_install"
    DEPLOYING = "deploying"
    POST_INSTALL = "post_install"
    CLEANUP = "cleanup"
    FINALIZE = "finalize"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class UpdateReport:
    """What a committed pass did."""

    update_type: UpdateType
    update_id: Optional[str] = None
    selected_components: Set[str] = field(default_factory=set)
    fetched: List[str] = field(default_factory=list)
    satisfied: List[str] = field(default_factory=list)
    ineligible: List[str] = field(default_factory=list)
    files_written: int = 0
    removed: List[str] = field(default_factory=list)
    ledger_size: int = 0


class UpdateOrchestrator:
    """Run one update pass against ``root_dir``; not reusable across passes."""

    def __init__(
        self,
        manifest: Manifest,
        *,
        base_url: str,
        root_dir: Path,
        transfer: TransferPort,
        state_store: StatePort,
        selector: Optional[ComponentSelector] = None,
        presenter: Optional[MessagePresenter] = None,
        channel: Optional[ProgressChannel] = None,
        token: Optional[CancellationToken] = None,
        settings: Optional[UpdaterSettings] = None,
        environment: Optional[Environment] = None,
        update_id: Optional[str] = None,
        on_state_changed: Optional[Callable[["UpdateState"], None]] = None,
    ) -> None:
        self.manifest = manifest
        self.base_url = base_url
        self.root_dir = Path(root_dir)
        self.transfer = transfer
        self.state_store = state_store
        self.selector = selector
        self.presenter = presenter
        self.channel = channel or ProgressChannel()
        self.token = token or CancellationToken()
        self.settings = settings or UpdaterSettings()
        self.environment = environment or Environment.current()
        self.update_id = update_id
        self.on_state_changed = on_state_changed
        self._state = UpdateState.IDLE

    @property
    def state(self) -> UpdateState:
        return self._state

    @property
    def staging_dir(self) -> Path:
        return self.root_dir / self.settings.staging_dir_name

    def cancel(self) -> None:
        self.token.cancel()

    # ------------------------------------------------------------------
    def run(self, update_type: UpdateType = UpdateType.INCREMENTAL) -> UpdateReport:
        """Execute the whole pass.

        Raises:
            UpdateError: Any fatal condition; the pass is then ``ABORTED`` and
                nothing was committed (see the module docstring).
        """
        if self._state is not UpdateState.IDLE:
            raise RuntimeError("UpdateOrchestrator instances run only once")
        update_type = UpdateType(update_type)
        report = UpdateReport(update_type=update_type, update_id=self.update_id)
        try:
            self.manifest.ensure_valid()
            self.channel.title(f"Updating {self.update_id}" if self.update_id else "Updating")
            cache = self.state_store.load_version_cache()
            previous = self.state_store.load_ledger()
            forced = update_type is UpdateType.FULL

            self._enter(UpdateState.INITIALIZE)
            self._show_messages(Phase.INITIALIZE, cache)

            self._enter(UpdateState.COMPONENT_SELECTION)
            report.selected_components = self._select_components(cache)

            if forced:
                log.info("Full update: clearing %s", self.staging_dir)
                self._clear_staging()

            self._enter(UpdateState.PRE_DOWNLOAD)
            log.info("Downloading files...")
            self.channel.status("Downloading files...")
            self.channel.set_window(*DOWNLOAD_WINDOW)
            self._show_messages(Phase.PRE_DOWNLOAD, cache)

            self._enter(UpdateState.DOWNLOADING)
            outcomes = self._download(cache, report, forced)
            self.channel.adjusted_value(1.0)

            self._enter(UpdateState.POST_DOWNLOAD)
            self._show_messages(Phase.POST_DOWNLOAD, cache)

            self._enter(UpdateState.PRE_INSTALL)
            log.info("Installing...")
            self.channel.status("Installing...")
            self.channel.set_window(*INSTALL_WINDOW)
            self._show_messages(Phase.PRE_INSTALL, cache)

            self._enter(UpdateState.DEPLOYING)
            current = self._deploy(outcomes, previous, report)
            self.channel.adjusted_value(1.0)

            self._enter(UpdateState.POST_INSTALL)
            self._show_messages(Phase.POST_INSTALL, cache)

            self._enter(UpdateState.CLEANUP)
            log.info("Removing old files...")
            self.channel.status("Removing old files...")
            report.removed = self._cleanup(previous, current)

            self._enter(UpdateState.FINALIZE)
            self._show_messages(Phase.FINALIZE, cache)
            self._commit(cache, current)
            report.ledger_size = len(current)
        except Exception:
            self._enter(UpdateState.ABORTED)
            raise

        self._enter(UpdateState.COMMITTED)
        self.channel.set_window(0.0, 1.0)
        self.channel.value(1.0)
        self.channel.status("Update complete.")
        log.info(
            "Update committed: %d fetched, %d unchanged, %d written, %d removed",
            len(report.fetched),
            len(report.satisfied),
            report.files_written,
            len(report.removed),
        )
        return report

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _enter(self, state: UpdateState) -> None:
        log.debug("Update state: %s -> %s", self._state.value, state.value)
        self._state = state
        if self.on_state_changed is not None:
            self.on_state_changed(state)

    def _show_messages(self, phase: Phase, cache: VersionCache) -> None:
        for message in self.manifest.messages_for_phase(phase):
            if not cache.mark_message(message):
                log.debug("Message %s already acknowledged", message.id)
                continue
            self.token.raise_if_cancelled()
            if self.presenter is None:
                log.info("[%s] %s: %s", phase.value, message.title, message.text)
                continue
            try:
                accepted = self.presenter.show(message, self.base_url)
            except UpdateCancelled:
                raise
            except Exception as exc:
                log.exception("Message %s could not be shown", message.id)
                raise UpdateCancelled(
                    "A required message could not be shown",
                    hint=str(exc),
                    step=phase.value,
                ) from exc
            if not accepted:
                raise UpdateCancelled(
                    f"'{message.title or message.id}' was declined",
                    step=phase.value,
                )

    def _select_components(self, cache: VersionCache) -> Set[str]:
        optional = self.manifest.optional_components
        recalled: Dict[str, bool] = {}
        for component in optional:
            remembered = cache.recall_component_selection(component.id)
            recalled[component.id] = component.selected if remembered is None else remembered

        chosen: Set[str] = set()
        if optional:
            if self.selector is not None:
                self.channel.status("Asking for install options...")
                chosen = set(self.selector.select(optional, dict(recalled)))
            else:
                chosen = {component_id for component_id, selected in recalled.items() if selected}
            for component in optional:
                cache.store_component_selection(component.id, component.id in chosen)
        selected = chosen | set(self.manifest.required_component_ids)
        log.info("Selected components: %s", ", ".join(sorted(selected)) or "(none)")
        return selected

    def _download(self, cache: VersionCache, report: UpdateReport, forced: bool) -> List[FileOutcome]:
        fetcher = FileFetcher(
            transfer=self.transfer,
            cache=cache,
            token=self.token,
            channel=self.channel,
            tries=self.settings.download_tries,
            retry_delay_s=self.settings.retry_delay_s,
            forced=forced,
        )
        eligible: List[Tuple[int, FilePolicy]] = []
        for index, (group, file) in enumerate(self.manifest.iter_files()):
            if self.manifest.is_eligible(file, self.environment, report.selected_components):
                eligible.append((index, resolve_policy(
                    group,
                    file,
                    base_url=self.base_url,
                    root_dir=self.root_dir,
                    staging_dir=self.staging_dir,
                )))
            else:
                identity = group.identity_of(file)
                log.info("%s does not match this environment or selection", identity)
                report.ineligible.append(identity)

        # progress is measured against the whole manifest, ineligible files included
        total_files = self.manifest.download_count
        if self.manifest.total_size > 0:
            weights = [policy.size for _, policy in eligible]
            total_weight = float(self.manifest.total_size)
        else:
            weights = [1] * len(eligible)
            total_weight = float(total_files) or 1.0

        outcomes: List[FileOutcome] = []
        done_weight = 0.0
        for (index, policy), weight in zip(eligible, weights):
            self.token.raise_if_cancelled()
            self.channel.adjusted_value(done_weight / total_weight)
            outcome = fetcher(
                policy,
                cursor=PassCursor(index, total_files),
                on_progress=self._blend(done_weight, weight, total_weight, policy.size),
            )
            outcomes.append(outcome)
            (report.satisfied if outcome.satisfied else report.fetched).append(policy.identity)
            done_weight += weight
        return outcomes

    def _blend(self, done: float, weight: float, total: float, declared: int) -> ProgressCallback:
        def on_progress(received: int, length: Optional[int]) -> None:
            expected = length or declared
            fraction = min(1.0, received / expected) if expected else 0.0
            self.channel.adjusted_value((done + fraction * weight) / total)

        return on_progress

    def _deploy(
        self,
        outcomes: List[FileOutcome],
        previous: InstalledPathLedger,
        report: UpdateReport,
    ) -> InstalledPathLedger:
        deployer = FileDeployer(self.root_dir, self.token)
        current = InstalledPathLedger()
        for index, outcome in enumerate(outcomes):
            self.token.raise_if_cancelled()
            policy = outcome.policy
            cursor = PassCursor(index, len(outcomes))
            self.channel.adjusted_value(cursor.fraction())
            if outcome.satisfied:
                if not current.copy_group_from(previous, policy.identity) and policy.destination.exists():
                    current.record(policy.identity, policy.identity)
                continue
            log.info("Installing %s", policy.destination)
            self.channel.status(f"Installing {policy.name} ({cursor.ordinal}/{cursor.total})...")
            report.files_written += deployer(policy, current)
        return current

    def _cleanup(self, previous: InstalledPathLedger, current: InstalledPathLedger) -> List[str]:
        removed: List[str] = []
        for path in previous.orphans_relative_to(current):
            self.token.raise_if_cancelled()
            try:
                relative = normalize_relative_path(path, field="ledger path")
            except ManifestRejected:
                log.warning("Ignoring invalid path in the installed-path ledger: %r", path)
                continue
            target = resolve_destination(self.root_dir, relative)
            if not target.is_file() and not target.is_symlink():
                removed.append(relative)
                continue
            try:
                target.unlink()
            except OSError as exc:
                raise DeployFailure(
                    f"Could not remove old file {relative}",
                    hint=exc.strerror or str(exc),
                    identity=relative,
                    step="cleanup",
                ) from exc
            log.info("Removed %s", relative)
            removed.append(relative)
            self._prune_empty_parents(target)
        return removed

    def _prune_empty_parents(self, target: Path) -> None:
        root = self.root_dir.resolve()
        parent = target.parent
        while parent.resolve() != root and root in parent.resolve().parents:
            if any(parent.iterdir()):
                return
            parent.rmdir()
            parent = parent.parent

    def _commit(self, cache: VersionCache, current: InstalledPathLedger) -> None:
        self.token.raise_if_cancelled()
        self.state_store.save_ledger(current)
        if self.update_id is not None:
            cache.set_last_update_id(self.update_id)
        pruned = cache.prune_untouched()
        if pruned:
            log.info("Dropped %d stale version cache entries", pruned)
        cache.persist()
        log.info("Saved installed-path ledger (%d paths) and version cache", len(current))
        try:
            shutil.rmtree(self.staging_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            log.warning("Could not remove staging area %s: %s", self.staging_dir, exc)

    def _clear_staging(self) -> None:
        try:
            shutil.rmtree(self.staging_dir)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise DeployFailure(
                "Could not clear the download area",
                hint=exc.strerror or str(exc),
                step="reset",
            ) from exc


__all__ = ["UpdateOrchestrator", "UpdateReport", "UpdateState"]
