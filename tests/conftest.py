"""Shared test fixtures for relman."""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from relman.config import ManagerConfig
from relman.core.active_pointer import ActiveReleasePointer
from relman.core.manager import ReleaseManager
from relman.core.runner import CommandResult
from relman.core.version_store import VersionStore
from relman.models.variants import default_variants

BINARY = "agave-validator"


# ---------------------------------------------------------------------------
# Command runner double
# ---------------------------------------------------------------------------


class RecordedCall:
    def __init__(self, args: list[str], cwd: Path | None, env: Mapping[str, str] | None, capture: bool) -> None:
        self.args = args
        self.cwd = cwd
        self.env = dict(env or {})
        self.capture = capture

    def __repr__(self) -> str:
        return f"RecordedCall({self.args!r})"


def _rsync_effect(args: list[str], cwd: Path | None, env: Mapping[str, str]) -> None:
    source, dest = Path(args[-2]), Path(args[-1])
    shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)


class FakeRunner:
    """Records every command and answers from scripted handlers.

    Handlers match on an argv prefix; the first element also matches the
    file name of an absolute executable path. The most recently registered
    matching handler wins. ``rsync`` copies the tree by default; anything
    unscripted succeeds with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self._handlers: list[tuple[tuple[str, ...], int, str, Callable[..., Any] | None]] = []
        self.on("rsync", effect=_rsync_effect)

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        effect: Callable[..., Any] | None = None,
    ) -> FakeRunner:
        self._handlers.append((prefix, returncode, stdout, effect))
        return self

    @staticmethod
    def _matches(argv: list[str], prefix: tuple[str, ...]) -> bool:
        if len(argv) < len(prefix):
            return False
        head = argv[0]
        if prefix[0] not in (head, Path(head).name):
            return False
        return list(argv[1:len(prefix)]) == list(prefix[1:])

    def run(
        self,
        args: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> CommandResult:
        argv = [os.fspath(a) for a in args]
        self.calls.append(RecordedCall(argv, cwd, env, capture))
        for prefix, returncode, stdout, effect in reversed(self._handlers):
            if self._matches(argv, prefix):
                if effect is not None:
                    effect(argv, cwd, dict(env or {}))
                return CommandResult(args=argv, returncode=returncode, stdout=stdout)
        return CommandResult(args=argv, returncode=0)

    def commands(self, *prefix: str) -> list[list[str]]:
        """Recorded argv lists matching *prefix*."""
        return [c.args for c in self.calls if self._matches(c.args, prefix)]

    def calls_for(self, *prefix: str) -> list[RecordedCall]:
        return [c for c in self.calls if self._matches(c.args, prefix)]


# ---------------------------------------------------------------------------
# Prompter double
# ---------------------------------------------------------------------------


class ScriptedPrompter:
    """Answers prompts from queues and records every question asked.

    An exhausted queue fails the test, so unexpected prompts are caught.
    """

    def __init__(
        self,
        *,
        confirms: Sequence[bool] = (),
        selections: Sequence[int | None] = (),
        multi: Sequence[Sequence[int]] = (),
        answers: Sequence[str] = (),
    ) -> None:
        self._confirms = list(confirms)
        self._selections = list(selections)
        self._multi = [list(m) for m in multi]
        self._answers = list(answers)
        self.questions: list[str] = []
        self.offered: list[list[str]] = []

    def _next(self, queue: list[Any], question: str) -> Any:
        self.questions.append(question)
        if not queue:
            raise AssertionError(f"Unexpected prompt: {question}")
        return queue.pop(0)

    def confirm(self, question: str, *, default: bool = False) -> bool:
        return self._next(self._confirms, question)

    def select(self, question: str, options: list[str]) -> int | None:
        self.offered.append(list(options))
        return self._next(self._selections, question)

    def select_many(self, question: str, options: list[str]) -> list[int]:
        self.offered.append(list(options))
        return self._next(self._multi, question)

    def ask(self, question: str, *, default: str = "") -> str:
        return self._next(self._answers, question)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def make_binary(directory: Path, name: str = BINARY, version: str = "2.1.5") -> Path:
    """Create an executable stand-in for the service binary."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(f"#!/bin/sh\necho '{name} {version}'\n")
    path.chmod(0o755)
    return path


def make_working_copy(path: Path, *, install_script: bool = True) -> Path:
    """A directory that looks like a cloned checkout."""
    (path / ".git").mkdir(parents=True, exist_ok=True)
    if install_script:
        script = path / "scripts" / "cargo-install-all.sh"
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o755)
    return path


def make_version(store: VersionStore, key: str, payload: int = 0) -> Path:
    """Lay out a stored version directly on disk, bypassing the build."""
    artifacts = store.artifact_dir(key)
    make_binary(artifacts)
    if payload:
        (artifacts / "payload.bin").write_bytes(b"\0" * payload)
    return artifacts


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def make_config(tmp_dir: Path) -> Callable[..., ManagerConfig]:
    """Factory fixture: a ManagerConfig rooted in the temp directory."""

    def _factory(**overrides: Any) -> ManagerConfig:
        values: dict[str, Any] = {
            "compiled_base_dir": tmp_dir / "compiled",
            "ledger_dir": tmp_dir / "ledger",
            "variants": default_variants(home=tmp_dir),
            "use_sudo": False,
        }
        values.update(overrides)
        return ManagerConfig(**values)

    return _factory


@pytest.fixture
def config(make_config: Callable[..., ManagerConfig]) -> ManagerConfig:
    return make_config()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def store(config: ManagerConfig, fake_runner: FakeRunner) -> VersionStore:
    """Provide a VersionStore in a temp directory."""
    return VersionStore(
        config.compiled_base_dir,
        fake_runner,
        artifacts_subdir=config.artifacts_subdir,
        pointer_name=config.active_pointer_name,
    )


@pytest.fixture
def pointer(config: ManagerConfig) -> ActiveReleasePointer:
    return ActiveReleasePointer(config.pointer_path, config.service_binary_name)


@pytest.fixture
def make_manager(config: ManagerConfig, fake_runner: FakeRunner, tmp_dir: Path) -> Callable[..., ReleaseManager]:
    """Factory fixture: a ReleaseManager whose login session has the pointer on PATH."""
    home = tmp_dir / "home"
    home.mkdir(exist_ok=True)

    def _factory(prompter: Any, **overrides: Any) -> ReleaseManager:
        env = {"PATH": str(config.pointer_path), "SHELL": "/bin/bash"}
        return ReleaseManager(
            overrides.get("config", config),
            prompter,
            overrides.get("runner", fake_runner),
            env=overrides.get("env", env),
            home=home,
        )

    return _factory
