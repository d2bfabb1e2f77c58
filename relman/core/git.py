"""Thin git wrapper for one working copy."""

from __future__ import annotations

from pathlib import Path

from relman.core.errors import ResolutionError
from relman.core.runner import CommandResult, CommandRunner

# Submodule remotes may be reached over ssh on a fresh host.
_SUBMODULE_SSH_COMMAND = "ssh -o StrictHostKeyChecking=accept-new -o LogLevel=ERROR"


class GitRepository:
    """Source-control operations against a single working copy.

    Parameters
    ----------
    path:
        The working copy directory.
    runner:
        Backend used to execute ``git``.
    """

    def __init__(self, path: Path, runner: CommandRunner) -> None:
        self.path = Path(path)
        self._runner = runner

    def _git(self, *args: str, capture: bool = False, env: dict[str, str] | None = None) -> CommandResult:
        return self._runner.run(["git", *args], cwd=self.path, env=env, capture=capture)

    @property
    def exists(self) -> bool:
        return (self.path / ".git").exists()

    def clone(self, url: str) -> CommandResult:
        return self._runner.run(["git", "clone", url, str(self.path)])

    def fetch(self) -> CommandResult:
        return self._git("fetch", "origin", "--prune", "--tags", "-f")

    def checkout_force(self, revision: str) -> CommandResult:
        return self._git("checkout", "-f", revision)

    def current_branch(self) -> str | None:
        """Branch name when HEAD is symbolic, ``None`` when detached (tag/commit)."""
        if not self._git("symbolic-ref", "-q", "HEAD", capture=True).ok:
            return None
        result = self._git("rev-parse", "--abbrev-ref", "HEAD", capture=True)
        branch = result.stdout.strip()
        return branch if result.ok and branch and branch != "HEAD" else None

    def pull(self, branch: str) -> CommandResult:
        return self._git("pull", "origin", branch)

    def update_submodules(self) -> CommandResult:
        return self._git(
            "submodule", "update", "--init", "--recursive",
            env={"GIT_SSH_COMMAND": _SUBMODULE_SSH_COMMAND},
        )

    def head_commit(self) -> str:
        result = self._git("rev-parse", "HEAD", capture=True)
        return result.stdout.strip() if result.ok else ""

    def list_tags(self, limit: int) -> list[str]:
        """Tags, newest semantic version first."""
        result = self._git("tag", "-l", "--sort=-v:refname", capture=True)
        return _head(result, limit)

    def list_branches(self, limit: int) -> list[str]:
        """Local and remote-tracking branches, most recent commit first."""
        result = self._git(
            "for-each-ref",
            "--sort=-committerdate",
            "refs/heads",
            "refs/remotes",
            "--format=%(committerdate:iso8601)    %(refname:short)",
            capture=True,
        )
        return _head(result, limit)


def _head(result: CommandResult, limit: int) -> list[str]:
    if not result.ok:
        raise ResolutionError(
            f"{' '.join(result.args)} failed with exit status {result.returncode}"
        )
    lines = [line for line in result.stdout.splitlines() if line.strip()]
    return lines[:limit]
