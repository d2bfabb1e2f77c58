"""External command execution behind a small protocol.

Everything relman asks of git, the toolchain, rsync, sudo and the service
binary goes through a ``CommandRunner`` so the core logic can be driven by
a scripted runner in tests.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

# Shell convention for "command not found".
NOT_FOUND_RETURNCODE = 127


class CommandResult(BaseModel):
    """Exit status and (when captured) output of one command."""

    model_config = ConfigDict(frozen=True)

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout, falling back to stderr (some tools print versions there)."""
        return self.stdout.strip() or self.stderr.strip()


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for command execution backends."""

    def run(
        self,
        args: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        """Run *args* to completion and return its result.

        ``env`` entries are layered over the current process environment.
        Output streams to the terminal unless ``capture`` is set.
        """
        ...


class SubprocessRunner:
    """Blocking ``subprocess.run`` backend. No timeouts: builds run to completion."""

    def run(
        self,
        args: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        argv = [os.fspath(a) for a in args]
        merged_env = None
        if env:
            merged_env = dict(os.environ)
            merged_env.update(env)

        logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd or ".")
        try:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                env=merged_env,
                capture_output=capture,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            logger.error("Command not found: %s", argv[0])
            return CommandResult(
                args=argv, returncode=NOT_FOUND_RETURNCODE, stderr=str(exc)
            )
        except PermissionError as exc:
            logger.error("Command not executable: %s", argv[0])
            return CommandResult(args=argv, returncode=126, stderr=str(exc))

        return CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
