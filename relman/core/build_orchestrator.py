"""Build Orchestrator — checkout, refresh, build, and locate the artifacts.

``build()`` enforces the canonical step order:

    checkout -> refresh branch -> sync submodules -> record commit
        -> install-all (or confirmed direct compiler) -> select output dir

Each step yields a ``StepResult``. Checkout, submodule sync and a build
that leaves no service binary anywhere are hard gates and raise. A failed
branch pull, or an install-all run that exits non-zero after the service
binary was produced, is DEGRADED and the build continues.

Output directory precedence when install-all fails: a configured custom
output root comes first, so artifacts left over from an earlier build in
the collected-output directory are never picked up by mistake.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import final

from relman.config import ManagerConfig
from relman.contrib.prompts import Prompter
from relman.core.errors import BuildError, CheckoutError, OperationCancelled, SubmoduleSyncError
from relman.core.git import GitRepository
from relman.core.runner import CommandRunner
from relman.models.outcomes import BuildProcedure, BuildResult, StepResult, StepStatus
from relman.models.variants import SourceVariant

logger = logging.getLogger(__name__)


def is_executable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


class BuildOrchestrator:
    """Turns a prepared working copy and a revision into build artifacts.

    Parameters
    ----------
    config:
        Toolchain names, output layout and environment.
    runner:
        Backend for git and toolchain commands.
    prompter:
        Asked before falling back to a direct compiler build.
    """

    def __init__(self, config: ManagerConfig, runner: CommandRunner, prompter: Prompter) -> None:
        self._config = config
        self._runner = runner
        self._prompter = prompter

    # ------------------------------------------------------------------
    # Lifecycle (not overridable)
    # ------------------------------------------------------------------

    @final
    def build(
        self,
        repo: GitRepository,
        variant: SourceVariant,
        revision: str,
        jobs: int,
        *,
        prior_steps: list[StepResult] | None = None,
    ) -> BuildResult:
        """Run every build step for *revision* and return where the artifacts are."""
        if jobs <= 0:
            raise BuildError(f"Build parallelism must be a positive integer, got {jobs}")

        steps: list[StepResult] = list(prior_steps or [])

        steps.append(self._checkout(repo, revision))
        steps.append(self._refresh_branch(repo))
        steps.append(self._sync_submodules(repo, revision))

        commit = repo.head_commit()
        steps.append(StepResult.success("metadata", f"{self._config.commit_env_var}={commit}"))
        env = self.toolchain_env(commit, jobs)

        script = repo.path / self._config.install_all_script
        if is_executable_file(script):
            procedure = BuildProcedure.INSTALL_ALL
            compiled = self._run_install_all(repo, script, env)
            steps.append(compiled)
            completed = compiled.status == StepStatus.SUCCESS
            candidates = self.output_candidates(repo.path, procedure, completed=completed)
        else:
            procedure = BuildProcedure.DIRECT_COMPILER
            steps.append(self._run_direct_compiler(repo, script, jobs, env, revision))
            completed = True
            candidates = self.output_candidates(repo.path, procedure, completed=True)

        output_dir, selection = self._select_output_dir(candidates, completed=completed)
        steps.append(selection)

        outcome = (
            StepStatus.DEGRADED
            if any(s.status == StepStatus.DEGRADED for s in steps)
            else StepStatus.SUCCESS
        )
        logger.info(
            "Build of %s (%s) finished: %s, artifacts in %s",
            revision, commit[:12] or "unknown commit", outcome.value, output_dir,
        )
        return BuildResult(
            revision=revision,
            variant=variant,
            commit=commit,
            procedure=procedure,
            outcome=outcome,
            output_dir=output_dir,
            steps=steps,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _checkout(self, repo: GitRepository, revision: str) -> StepResult:
        logger.info("Checking out %s in %s (forced; local changes are discarded)", revision, repo.path)
        result = repo.checkout_force(revision)
        if not result.ok:
            raise CheckoutError(
                f"Failed to checkout {revision!r}. It may not exist on the remote repository."
            )
        return StepResult.success("checkout", revision)

    def _refresh_branch(self, repo: GitRepository) -> StepResult:
        branch = repo.current_branch()
        if branch is None:
            logger.info("Detached HEAD (tag or commit); skipping pull")
            return StepResult.success("pull", "fixed reference, nothing to pull")

        logger.info("On branch %s; pulling latest changes from origin", branch)
        if repo.pull(branch).ok:
            return StepResult.success("pull", branch)

        detail = (
            f"git pull failed for branch {branch!r}; building the last known state "
            "of the branch, which may be stale"
        )
        logger.warning(detail)
        return StepResult.degraded("pull", detail)

    def _sync_submodules(self, repo: GitRepository, revision: str) -> StepResult:
        logger.info("Updating submodules")
        if not repo.update_submodules().ok:
            raise SubmoduleSyncError(f"Failed to update submodules for {revision!r}")
        return StepResult.success("submodules")

    def _run_install_all(self, repo: GitRepository, script: Path, env: dict[str, str]) -> StepResult:
        logger.info("Building with %s", script)
        result = self._runner.run([str(script), "."], cwd=repo.path, env=env)
        if result.ok:
            return StepResult.success("build", f"{script.name} completed")

        binary = self._config.service_binary_name
        probes = self.output_candidates(repo.path, BuildProcedure.INSTALL_ALL, completed=False)
        logger.warning(
            "%s exited with %d; probing %s for %s",
            script.name, result.returncode, ", ".join(str(p) for p in probes), binary,
        )
        located = next((p for p in probes if is_executable_file(p / binary)), None)
        if located is None:
            raise BuildError(
                f"{script.name} failed (exit {result.returncode}) and {binary} was not found in "
                + ", ".join(str(p) for p in probes)
            )

        detail = (
            f"{script.name} exited with {result.returncode} but {binary} was built "
            f"({located}); auxiliary tools may be missing"
        )
        logger.warning(detail)
        return StepResult.degraded("build", detail)

    def _run_direct_compiler(
        self,
        repo: GitRepository,
        script: Path,
        jobs: int,
        env: dict[str, str],
        revision: str,
    ) -> StepResult:
        logger.warning("%s not found or not executable in %s", script.name, repo.path)
        question = (
            f"{self._config.install_all_script} is missing, so build metadata may not be embedded. "
            f"Fall back to a direct '{self._config.compiler_command} build --release'?"
        )
        if not self._prompter.confirm(question, default=False):
            raise OperationCancelled(
                f"Build cancelled: {self._config.install_all_script} is missing.", step="build"
            )

        wrapper = repo.path / self._config.compiler_command
        compiler = f"./{self._config.compiler_command}" if is_executable_file(wrapper) else self._config.compiler_command
        result = self._runner.run(
            [compiler, "build", "--release", "-j", str(jobs)], cwd=repo.path, env=env
        )
        if not result.ok:
            raise BuildError(
                f"Direct {compiler} build failed for {revision!r} (exit {result.returncode})"
            )
        logger.warning("Built %s without %s; provenance may not be embedded", revision, script.name)
        return StepResult.success("build", f"direct {compiler} build")

    # ------------------------------------------------------------------
    # Output layout
    # ------------------------------------------------------------------

    def toolchain_env(self, commit: str, jobs: int) -> dict[str, str]:
        """Environment for the toolchain: build metadata, parallelism, output root."""
        env = dict(self._config.build_env)
        env[self._config.commit_env_var] = commit
        env[self._config.jobs_env_var] = str(jobs)
        if self._config.custom_output_root is not None:
            env["CARGO_TARGET_DIR"] = str(self._config.custom_output_root)
        return env

    def output_candidates(
        self,
        source_dir: Path,
        procedure: BuildProcedure,
        *,
        completed: bool,
    ) -> list[Path]:
        """Artifact directories to consider, most preferred first."""
        cfg = self._config
        collected = source_dir / cfg.collected_output_subdir
        default_compiled = source_dir / cfg.compiler_output_subdir / cfg.compiler_profile
        custom = (
            cfg.custom_output_root / cfg.compiler_profile
            if cfg.custom_output_root is not None
            else None
        )
        compiled = custom or default_compiled

        if procedure == BuildProcedure.DIRECT_COMPILER:
            ordered = [compiled]
        elif completed:
            ordered = [collected, compiled]
        else:
            ordered = [p for p in (custom, default_compiled, collected) if p is not None]

        unique: list[Path] = []
        for path in ordered:
            if path not in unique:
                unique.append(path)
        return unique

    def _select_output_dir(self, candidates: list[Path], *, completed: bool) -> tuple[Path, StepResult]:
        binary = self._config.service_binary_name
        for index, candidate in enumerate(candidates):
            if is_executable_file(candidate / binary):
                if index > 0 and completed:
                    detail = f"{candidates[0]} has no {binary}; using {candidate} instead"
                    logger.warning(detail)
                    return candidate, StepResult.degraded("output", detail)
                return candidate, StepResult.success("output", str(candidate))
        raise BuildError(
            f"Build reported success but {binary} was not found in "
            + ", ".join(str(c) for c in candidates)
        )
