"""Post-swap verification and the graceful service restart.

Verification runs the service binary's version flag twice:

1. through the pointer's direct path; a failure is reported as FAILURE but
   the pointer stays where it is (the artifacts are already in place);
2. the way an interactive login session would find it, from the home
   directory and via ``PATH``; a failure is only a warning that tells the
   operator which shell profile still needs the pointer.

The restart asks the running service to exit once its thresholds allow;
the process supervisor then starts it again through the new pointer.
"""

from __future__ import annotations

import logging
import os
import pwd
import shutil
from collections.abc import Mapping
from pathlib import Path

from relman.config import ManagerConfig
from relman.contrib.prompts import Prompter
from relman.core.active_pointer import ActiveReleasePointer
from relman.core.runner import CommandResult, CommandRunner
from relman.models.outcomes import RestartReport, StepResult, VerificationReport

logger = logging.getLogger(__name__)

_NO_LOGIN_SHELLS = frozenset({"", "/sbin/nologin", "/usr/sbin/nologin"})


def login_shell() -> str:
    """The current user's shell from the user database, or ``""``."""
    try:
        return pwd.getpwuid(os.getuid()).pw_shell
    except KeyError:
        return ""


def detect_user_shell(env: Mapping[str, str]) -> str:
    """Shell name of the operator: user database first, then ``$SHELL``."""
    shell = login_shell()
    if shell in _NO_LOGIN_SHELLS:
        shell = env.get("SHELL") or "/bin/bash"
    return Path(shell).name


def shell_profile_hint(env: Mapping[str, str], home: Path) -> Path:
    """Profile file the operator should add the pointer to."""
    shell = detect_user_shell(env)
    if shell == "zsh":
        zshenv = home / ".zshenv"
        try:
            if zshenv.is_file() and "PATH" in zshenv.read_text(errors="replace"):
                return zshenv
        except OSError:
            pass
        return home / ".zshrc"
    return home / ".bashrc"


def _version_reported(result: CommandResult) -> bool:
    return result.ok and bool(result.output)


class ReleaseVerifier:
    """Checks that the service binary works through the Active Release Pointer.

    Parameters
    ----------
    config:
        Binary name and version flag.
    runner:
        Backend used to invoke the binary.
    pointer:
        The pointer that was just swapped.
    env:
        Environment of an interactive session. Defaults to ``os.environ``.
    home:
        Home directory of the operator. Defaults to ``Path.home()``.
    """

    def __init__(
        self,
        config: ManagerConfig,
        runner: CommandRunner,
        pointer: ActiveReleasePointer,
        *,
        env: Mapping[str, str] | None = None,
        home: Path | None = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._pointer = pointer
        self._env = env if env is not None else os.environ
        self._home = home or Path.home()

    def verify(self) -> VerificationReport:
        direct, reported = self.check_direct()
        environment = self.check_environment()
        return VerificationReport(direct=direct, environment=environment, reported_version=reported)

    def check_direct(self) -> tuple[StepResult, str]:
        binary = self._pointer.binary_path
        result = self._runner.run([str(binary), self._config.version_flag], capture=True)
        if _version_reported(result):
            logger.info("Active release reports: %s", result.output)
            return StepResult.success("verify", result.output), result.output

        detail = (
            f"{binary} {self._config.version_flag} failed (exit {result.returncode}). "
            f"The pointer was left in place; fix {self._pointer.path} manually."
        )
        logger.error(detail)
        return StepResult.failure("verify", detail), ""

    def check_environment(self) -> StepResult:
        name = self._config.service_binary_name
        search_path = self._env.get("PATH", "")
        found = shutil.which(name, path=search_path)
        profile = shell_profile_hint(self._env, self._home)

        if found is None:
            detail = (
                f"{name} is not on PATH for a login session. Add "
                f"'export PATH=\"{self._pointer.path}:$PATH\"' to {profile}."
            )
            logger.warning(detail)
            return StepResult.degraded("environment", detail)

        result = self._runner.run(
            [found, self._config.version_flag], cwd=self._home, capture=True
        )
        if not _version_reported(result):
            detail = (
                f"{found} {self._config.version_flag} failed from {self._home} "
                f"(exit {result.returncode}); check the PATH entry in {profile}."
            )
            logger.warning(detail)
            return StepResult.degraded("environment", detail)

        expected = self._pointer.binary_path
        if Path(found).resolve() != expected.resolve():
            detail = (
                f"{name} on PATH resolves to {found}, not {expected}. "
                f"A login session would run a different binary; update {profile}."
            )
            logger.warning(detail)
            return StepResult.degraded("environment", detail)

        return StepResult.success("environment", found)


class RestartCoordinator:
    """Asks the running service to exit so its supervisor restarts it.

    Parameters
    ----------
    config:
        Ledger path, threshold defaults and the no-wait flag.
    runner:
        Backend used to send the exit command.
    prompter:
        Collects the thresholds and the go-ahead from the operator.
    pointer:
        The exit command is sent by the binary behind this pointer.
    """

    def __init__(
        self,
        config: ManagerConfig,
        runner: CommandRunner,
        prompter: Prompter,
        pointer: ActiveReleasePointer,
    ) -> None:
        self._config = config
        self._runner = runner
        self._prompter = prompter
        self._pointer = pointer

    def offer(self) -> RestartReport:
        """Prompt for thresholds, confirm, then send the exit command."""
        stake = self._ask_int(
            "Maximum delinquent stake (%) allowed for the restart",
            self._config.default_max_delinquent_stake,
        )
        idle = self._ask_int(
            "Minimum idle time (seconds) before exiting",
            self._config.default_min_idle_time,
        )
        question = (
            f"Restart the service now (--max-delinquent-stake {stake} --min-idle-time {idle})?"
        )
        if not self._prompter.confirm(question, default=False):
            logger.info("Restart skipped; restart the service manually to pick up the new release")
            return RestartReport(requested=False, max_delinquent_stake=stake, min_idle_time=idle)

        result = self._runner.run(self.exit_command(stake, idle))
        if result.ok:
            step = StepResult.success("restart", "exit requested")
        else:
            step = StepResult.degraded(
                "restart",
                f"Exit command failed (exit {result.returncode}); restart the service manually",
            )
            logger.warning(step.detail)
        return RestartReport(requested=True, result=step, max_delinquent_stake=stake, min_idle_time=idle)

    def exit_command(self, max_delinquent_stake: int, min_idle_time: int) -> list[str]:
        args = [
            str(self._pointer.binary_path),
            "--ledger", str(self._config.ledger_dir),
            "exit",
            "--max-delinquent-stake", str(max_delinquent_stake),
            "--min-idle-time", str(min_idle_time),
        ]
        if self._config.restart_no_wait:
            args.append("--no-wait-for-exit")
        args.append("--monitor")
        return args

    def _ask_int(self, question: str, default: int) -> int:
        while True:
            reply = self._prompter.ask(question, default=str(default)).strip()
            if not reply:
                return default
            if reply.isdigit():
                return int(reply)
            logger.warning("%r is not a non-negative integer", reply)
