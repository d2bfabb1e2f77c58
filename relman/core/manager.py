"""Release manager — the coordinator behind every CLI command.

The ReleaseManager wires the SourceResolver, BuildOrchestrator,
VersionStore, ActiveReleasePointer, verification and restart, and the
rollback/cleanup selectors into the operator-facing operations.

Mutating operations (upgrade, rollback, clean) run under the store's
advisory lock. Everything an upgrade can refuse on its own (an unusable
revision, a declined variant confirmation) is decided before the lock is
taken and before anything on disk changes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path

from relman.config import ManagerConfig
from relman.contrib.prompts import Prompter
from relman.core.active_pointer import ActiveReleasePointer
from relman.core.build_orchestrator import BuildOrchestrator
from relman.core.cleanup import CleanupManager
from relman.core.errors import BuildError, NothingToSelectError, OperationCancelled
from relman.core.lock import ReleaseLock
from relman.core.resolver import SourceResolver
from relman.core.rollback import RollbackSelector
from relman.core.runner import CommandRunner, SubprocessRunner
from relman.core.verification import ReleaseVerifier, RestartCoordinator
from relman.core.version_store import VersionStore
from relman.models.outcomes import (
    CleanupPlan,
    CleanupReport,
    RestartReport,
    RollbackReport,
    StoredVersion,
    StoreStatus,
    UpgradeReport,
    VerificationReport,
)

logger = logging.getLogger(__name__)


class ReleaseManager:
    """Builds, stores, activates, rolls back and cleans service releases.

    Parameters
    ----------
    config:
        The process configuration, built once at startup.
    prompter:
        Operator decision port (interactive or automatic).
    runner:
        Command backend. Defaults to ``SubprocessRunner``.
    env:
        Environment of an interactive login session, for verification.
    home:
        Operator home directory, for verification.
    """

    def __init__(
        self,
        config: ManagerConfig,
        prompter: Prompter,
        runner: CommandRunner | None = None,
        *,
        env: Mapping[str, str] | None = None,
        home: Path | None = None,
    ) -> None:
        self.config = config
        self.prompter = prompter
        self.runner = runner or SubprocessRunner()

        self.store = VersionStore(
            config.compiled_base_dir,
            self.runner,
            artifacts_subdir=config.artifacts_subdir,
            pointer_name=config.active_pointer_name,
            use_sudo=config.use_sudo,
        )
        self.pointer = ActiveReleasePointer(config.pointer_path, config.service_binary_name)
        self.resolver = SourceResolver(config, self.runner, prompter)
        self.builder = BuildOrchestrator(config, self.runner, prompter)
        self.verifier = ReleaseVerifier(config, self.runner, self.pointer, env=env, home=home)
        self.restarter = RestartCoordinator(config, self.runner, prompter, self.pointer)

    def lock(self) -> ReleaseLock:
        return ReleaseLock(self.config.lock_path)

    # ------------------------------------------------------------------
    # Upgrade
    # ------------------------------------------------------------------

    def upgrade(self, revision: str, jobs: int | None = None, *, restart: bool = True) -> UpgradeReport:
        """Build *revision*, store it, and make it the active release."""
        jobs = self.config.build_jobs if jobs is None else jobs
        if jobs <= 0:
            raise BuildError(f"Build parallelism must be a positive integer, got {jobs}")

        key = self.store.key_for(revision)
        variant = self.resolver.resolve(revision)
        logger.info("Upgrading to %s (version key %s) from %s", revision, key, variant.name)

        store_root = self.store.ensure_root()
        with self.lock():
            repo, steps = self.resolver.prepare_working_copy(variant)
            build = self.builder.build(
                repo, variant, revision, jobs, prior_steps=[store_root, *steps]
            )
            entry = self.store.materialize(key, build.output_dir)

            question = (
                f"Version {entry.key} is stored at {entry.artifact_dir}. "
                f"Point {self.pointer.path} at it now?"
            )
            if not self.prompter.confirm(question, default=False):
                raise OperationCancelled(
                    f"Pointer left unchanged; {entry.key} remains available for a later rollback.",
                    step="pointer",
                )

            swap = self.pointer.swap(entry, "upgrade")
            verification = self.verifier.verify()
            restart_report = self._maybe_restart(verification, restart)

        return UpgradeReport(
            build=build,
            entry=entry,
            swap=swap,
            verification=verification,
            restart=restart_report,
        )

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback(self, *, restart: bool = True) -> RollbackReport:
        """Re-activate a previously stored version chosen by the operator."""
        if not self.store.base.is_dir():
            raise NothingToSelectError(f"No stored versions in {self.store.base}")

        with self.lock():
            selector = RollbackSelector(self.store, self.pointer, self.prompter)
            previous = self.pointer.active_key()
            entry = selector.select()
            swap = self.pointer.swap(entry, "rollback")
            verification = self.verifier.verify()
            restart_report = self._maybe_restart(verification, restart)

        return RollbackReport(
            previous_key=previous,
            swap=swap,
            verification=verification,
            restart=restart_report,
        )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def clean(self, on_plan: Callable[[CleanupPlan], None] | None = None) -> CleanupReport:
        """Delete stored versions chosen by the operator, after typed confirmation.

        *on_plan* is called with the sized selection before the operator is
        asked to confirm, so sizes and the running total can be shown.
        """
        if not self.store.base.is_dir():
            logger.info("No stored versions in %s", self.store.base)
            return CleanupReport(plan=CleanupPlan())

        with self.lock():
            cleaner = CleanupManager(
                self.store,
                self.pointer,
                self.prompter,
                confirm_token=self.config.cleanup_confirm_token,
            )
            plan = cleaner.select()
            if plan.empty:
                logger.info("Nothing selected; no versions deleted")
                return CleanupReport(plan=plan)
            if on_plan is not None:
                on_plan(plan)
            cleaner.confirm(plan)
            return cleaner.execute(plan)

    # ------------------------------------------------------------------
    # Read-only
    # ------------------------------------------------------------------

    def list_tags(self, variant_name: str) -> list[str]:
        variant = self.resolver.variant_named(variant_name)
        repo, _ = self.resolver.prepare_working_copy(variant)
        return repo.list_tags(self.config.list_limit)

    def list_branches(self, variant_name: str) -> list[str]:
        variant = self.resolver.variant_named(variant_name)
        repo, _ = self.resolver.prepare_working_copy(variant)
        return repo.list_branches(self.config.list_limit)

    def status(self) -> StoreStatus:
        active = self.pointer.active_key()
        versions = [
            StoredVersion(entry=e, size_bytes=self.store.size_of(e.key), active=e.key == active)
            for e in self.store.list_entries()
        ]
        return StoreStatus(
            base=self.store.base,
            pointer=self.pointer.path,
            pointer_state=self.pointer.state(),
            active_key=active,
            versions=versions,
            backups=self.pointer.list_backups(),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _maybe_restart(self, verification: VerificationReport, restart: bool) -> RestartReport:
        if not restart:
            return RestartReport(requested=False)
        if not verification.direct.ok:
            logger.warning("Skipping restart: the new release failed its version check")
            return RestartReport(requested=False)
        return self.restarter.offer()
