"""Tests for post-swap verification and the graceful restart."""

from __future__ import annotations

import pytest
from conftest import BINARY, FakeRunner, ScriptedPrompter, make_version

from relman.core import verification
from relman.core.verification import (
    ReleaseVerifier,
    RestartCoordinator,
    detect_user_shell,
    shell_profile_hint,
)
from relman.models.outcomes import StepStatus


@pytest.fixture(autouse=True)
def no_database_shell(monkeypatch):
    """Let $SHELL decide unless a test sets the login shell."""
    monkeypatch.setattr(verification, "login_shell", lambda: "")


@pytest.fixture
def active(store, pointer):
    make_version(store, "v2.1.5-jito")
    pointer.swap(store.get("v2.1.5-jito"), "upgrade")
    return pointer


def _verifier(config, runner, pointer, tmp_dir, *, path="", shell="/bin/bash"):
    home = tmp_dir / "home"
    home.mkdir(exist_ok=True)
    env = {"PATH": path, "SHELL": shell}
    return ReleaseVerifier(config, runner, pointer, env=env, home=home)


class TestDirectCheck:
    def test_success_reports_version(self, config, active, tmp_dir):
        runner = FakeRunner().on(BINARY, stdout="agave-validator 2.1.5 (src:abc123)\n")
        report = _verifier(config, runner, active, tmp_dir, path=str(active.path)).verify()

        assert report.direct.status == StepStatus.SUCCESS
        assert report.reported_version.startswith("agave-validator 2.1.5")
        direct_call = runner.calls[0]
        assert direct_call.args == [str(active.binary_path), "-V"]
        assert direct_call.capture is True

    def test_failure_is_reported_not_raised(self, config, active, tmp_dir):
        runner = FakeRunner().on(BINARY, returncode=1)
        report = _verifier(config, runner, active, tmp_dir).verify()
        assert report.direct.status == StepStatus.FAILURE
        assert "manually" in report.direct.detail
        assert active.path.is_symlink()

    def test_empty_output_is_not_sane(self, config, active, tmp_dir):
        runner = FakeRunner().on(BINARY, stdout="")
        report = _verifier(config, runner, active, tmp_dir).verify()
        assert report.direct.status == StepStatus.FAILURE


class TestEnvironmentCheck:
    def test_on_path_through_pointer(self, config, active, tmp_dir):
        runner = FakeRunner().on(BINARY, stdout="agave-validator 2.1.5\n")
        verifier = _verifier(config, runner, active, tmp_dir, path=str(active.path))

        result = verifier.check_environment()

        assert result.status == StepStatus.SUCCESS
        assert runner.calls[-1].cwd == tmp_dir / "home"

    def test_missing_from_path_names_profile(self, config, active, tmp_dir):
        runner = FakeRunner().on(BINARY, stdout="agave-validator 2.1.5\n")
        verifier = _verifier(config, runner, active, tmp_dir, path=str(tmp_dir / "empty"))

        result = verifier.check_environment()

        assert result.status == StepStatus.DEGRADED
        assert ".bashrc" in result.detail
        assert str(active.path) in result.detail

    def test_drift_to_another_binary_warns(self, config, active, tmp_dir, store):
        other = make_version(store, "v1.0")
        runner = FakeRunner().on(BINARY, stdout="agave-validator 1.0\n")
        verifier = _verifier(config, runner, active, tmp_dir, path=str(other))

        result = verifier.check_environment()

        assert result.status == StepStatus.DEGRADED
        assert "resolves to" in result.detail

    def test_environment_failure_does_not_affect_direct(self, config, active, tmp_dir):
        runner = FakeRunner().on(BINARY, stdout="agave-validator 2.1.5\n")
        report = _verifier(config, runner, active, tmp_dir, path="").verify()
        assert report.direct.ok
        assert report.environment.status == StepStatus.DEGRADED
        assert len(report.warnings) == 1


class TestShellProfileHint:
    def test_bash(self, tmp_dir):
        assert shell_profile_hint({"SHELL": "/bin/bash"}, tmp_dir) == tmp_dir / ".bashrc"

    def test_zsh_without_zshenv(self, tmp_dir):
        assert shell_profile_hint({"SHELL": "/usr/bin/zsh"}, tmp_dir) == tmp_dir / ".zshrc"

    def test_zsh_with_path_in_zshenv(self, tmp_dir):
        (tmp_dir / ".zshenv").write_text('export PATH="$HOME/bin:$PATH"\n')
        assert shell_profile_hint({"SHELL": "/bin/zsh"}, tmp_dir) == tmp_dir / ".zshenv"

    def test_user_database_wins_over_environment(self, monkeypatch, tmp_dir):
        monkeypatch.setattr(verification, "login_shell", lambda: "/usr/bin/zsh")
        assert detect_user_shell({"SHELL": "/bin/bash"}) == "zsh"
        assert shell_profile_hint({"SHELL": "/bin/bash"}, tmp_dir) == tmp_dir / ".zshrc"

    @pytest.mark.parametrize("database", ["", "/sbin/nologin"])
    def test_environment_used_when_database_has_no_shell(self, monkeypatch, database):
        monkeypatch.setattr(verification, "login_shell", lambda: database)
        assert detect_user_shell({"SHELL": "/bin/zsh"}) == "zsh"

    def test_defaults_to_bash(self):
        assert detect_user_shell({}) == "bash"


class TestRestart:
    def test_exit_command_shape(self, config, active):
        coordinator = RestartCoordinator(config, FakeRunner(), ScriptedPrompter(), active)
        args = coordinator.exit_command(5, 30)
        assert args == [
            str(active.binary_path),
            "--ledger", str(config.ledger_dir),
            "exit",
            "--max-delinquent-stake", "5",
            "--min-idle-time", "30",
            "--no-wait-for-exit",
            "--monitor",
        ]

    def test_wait_flag_is_configurable(self, make_config, active):
        config = make_config(restart_no_wait=False)
        coordinator = RestartCoordinator(config, FakeRunner(), ScriptedPrompter(), active)
        assert "--no-wait-for-exit" not in coordinator.exit_command(5, 5)

    def test_prompts_for_thresholds_then_sends_exit(self, config, active):
        runner = FakeRunner()
        prompter = ScriptedPrompter(answers=["10", ""], confirms=[True])

        report = RestartCoordinator(config, runner, prompter, active).offer()

        assert report.requested is True
        assert report.max_delinquent_stake == 10
        assert report.min_idle_time == config.default_min_idle_time
        assert report.result.status == StepStatus.SUCCESS
        [exit_call] = runner.commands(BINARY)
        assert "exit" in exit_call

    def test_invalid_threshold_is_asked_again(self, config, active):
        prompter = ScriptedPrompter(answers=["lots", "7", "3"], confirms=[False])
        report = RestartCoordinator(config, FakeRunner(), prompter, active).offer()
        assert report.max_delinquent_stake == 7
        assert report.min_idle_time == 3

    def test_declined_restart_sends_nothing(self, config, active):
        runner = FakeRunner()
        prompter = ScriptedPrompter(answers=["5", "5"], confirms=[False])
        report = RestartCoordinator(config, runner, prompter, active).offer()
        assert report.requested is False
        assert runner.calls == []

    def test_failed_exit_command_is_degraded(self, config, active):
        runner = FakeRunner().on(BINARY, returncode=1)
        prompter = ScriptedPrompter(answers=["5", "5"], confirms=[True])
        report = RestartCoordinator(config, runner, prompter, active).offer()
        assert report.result.status == StepStatus.DEGRADED
