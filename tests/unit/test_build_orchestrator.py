"""Tests for the BuildOrchestrator — step order, degraded success, output selection."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import BINARY, FakeRunner, ScriptedPrompter, make_binary, make_working_copy

from relman.core.build_orchestrator import BuildOrchestrator
from relman.core.errors import BuildError, CheckoutError, OperationCancelled, SubmoduleSyncError
from relman.core.git import GitRepository
from relman.models.outcomes import BuildProcedure, StepStatus

INSTALL_ALL = "cargo-install-all.sh"


def _produce(*relative: str):
    """Runner effect: drop the service binary into each directory under the checkout."""

    def effect(argv, cwd, env):
        for rel in relative:
            make_binary(Path(cwd) / rel)

    return effect


def _produce_at(*absolute: Path):
    def effect(argv, cwd, env):
        for directory in absolute:
            make_binary(directory)

    return effect


@pytest.fixture
def variant(config):
    return config.variant_named("jito")


@pytest.fixture
def checkout(variant):
    return make_working_copy(variant.working_copy)


def _build(config, runner, checkout, variant, *, prompter=None, jobs=2, revision="v2.1.5-jito"):
    builder = BuildOrchestrator(config, runner, prompter or ScriptedPrompter())
    return builder.build(GitRepository(checkout, runner), variant, revision, jobs)


# ---------------------------------------------------------------------------
# Preferred procedure
# ---------------------------------------------------------------------------


class TestInstallAll:
    def test_success_uses_collected_output(self, config, checkout, variant):
        runner = FakeRunner()
        runner.on("git", "rev-parse", "HEAD", stdout="abc123def456\n")
        runner.on(INSTALL_ALL, effect=_produce("bin", "target/release"))

        result = _build(config, runner, checkout, variant, jobs=4)

        assert result.outcome == StepStatus.SUCCESS
        assert result.procedure == BuildProcedure.INSTALL_ALL
        assert result.output_dir == checkout / "bin"
        assert result.commit == "abc123def456"
        [call] = runner.calls_for(INSTALL_ALL)
        assert call.cwd == checkout
        assert call.env["CI_COMMIT"] == "abc123def456"
        assert call.env["CARGO_BUILD_JOBS"] == "4"
        assert "RUSTFLAGS" in call.env

    def test_step_order(self, config, checkout, variant):
        runner = FakeRunner().on(INSTALL_ALL, effect=_produce("bin"))
        _build(config, runner, checkout, variant)

        git_verbs = [c.args[1] for c in runner.calls if c.args[0] == "git"]
        assert git_verbs.index("checkout") < git_verbs.index("submodule")
        assert runner.calls[-1].args[0].endswith(INSTALL_ALL)

    def test_degraded_when_binary_at_probe_location(self, config, checkout, variant):
        """Install-all fails after compiling: continue with a warning."""
        runner = FakeRunner().on(INSTALL_ALL, returncode=1, effect=_produce("target/release"))

        result = _build(config, runner, checkout, variant)

        assert result.outcome == StepStatus.DEGRADED
        assert result.output_dir == checkout / "target" / "release"
        assert any("auxiliary" in w for w in result.warnings)

    def test_fatal_when_binary_nowhere(self, config, checkout, variant):
        runner = FakeRunner().on(INSTALL_ALL, returncode=1)
        with pytest.raises(BuildError, match=BINARY):
            _build(config, runner, checkout, variant)

    def test_completed_but_collected_output_missing_falls_back(self, config, checkout, variant):
        runner = FakeRunner().on(INSTALL_ALL, effect=_produce("target/release"))
        result = _build(config, runner, checkout, variant)
        assert result.output_dir == checkout / "target" / "release"
        assert result.outcome == StepStatus.DEGRADED

    def test_completed_without_binary_is_fatal(self, config, checkout, variant):
        runner = FakeRunner()
        with pytest.raises(BuildError):
            _build(config, runner, checkout, variant)


# ---------------------------------------------------------------------------
# Output directory precedence
# ---------------------------------------------------------------------------


class TestOutputPrecedence:
    def test_custom_root_beats_stale_collected_output(self, make_config, tmp_dir):
        custom = tmp_dir / "fast-target"
        config = make_config(custom_output_root=custom)
        checkout = make_working_copy(config.variant_named("jito").working_copy)
        make_binary(checkout / "bin", version="stale")
        runner = FakeRunner().on(INSTALL_ALL, returncode=1, effect=_produce_at(custom / "release"))

        result = _build(config, runner, checkout, config.variant_named("jito"))

        assert result.output_dir == custom / "release"
        [call] = runner.calls_for(INSTALL_ALL)
        assert call.env["CARGO_TARGET_DIR"] == str(custom)

    def test_degraded_candidates_order(self, make_config, tmp_dir):
        custom = tmp_dir / "fast-target"
        config = make_config(custom_output_root=custom)
        builder = BuildOrchestrator(config, FakeRunner(), ScriptedPrompter())
        source = tmp_dir / "src"

        candidates = builder.output_candidates(source, BuildProcedure.INSTALL_ALL, completed=False)

        assert candidates == [custom / "release", source / "target" / "release", source / "bin"]

    def test_completed_candidates_prefer_collected(self, config, tmp_dir):
        builder = BuildOrchestrator(config, FakeRunner(), ScriptedPrompter())
        source = tmp_dir / "src"
        candidates = builder.output_candidates(source, BuildProcedure.INSTALL_ALL, completed=True)
        assert candidates[0] == source / "bin"


# ---------------------------------------------------------------------------
# Hard gates and the branch refresh
# ---------------------------------------------------------------------------


class TestGates:
    def test_checkout_failure_is_fatal(self, config, checkout, variant):
        runner = FakeRunner().on("git", "checkout", returncode=1)
        with pytest.raises(CheckoutError, match="v9.9.9"):
            _build(config, runner, checkout, variant, revision="v9.9.9")
        assert runner.calls_for(INSTALL_ALL) == []

    def test_checkout_is_forced(self, config, checkout, variant):
        runner = FakeRunner().on(INSTALL_ALL, effect=_produce("bin"))
        _build(config, runner, checkout, variant)
        assert runner.commands("git", "checkout", "-f", "v2.1.5-jito")

    def test_submodule_failure_is_fatal(self, config, checkout, variant):
        runner = FakeRunner().on("git", "submodule", returncode=1)
        with pytest.raises(SubmoduleSyncError):
            _build(config, runner, checkout, variant)

    def test_branch_pull_failure_is_a_warning(self, config, checkout, variant):
        runner = FakeRunner()
        runner.on("git", "rev-parse", "--abbrev-ref", stdout="master\n")
        runner.on("git", "pull", returncode=1)
        runner.on(INSTALL_ALL, effect=_produce("bin"))

        result = _build(config, runner, checkout, variant, revision="master")

        assert result.outcome == StepStatus.DEGRADED
        assert runner.commands("git", "pull", "origin", "master")
        assert any("stale" in w for w in result.warnings)

    def test_detached_head_skips_pull(self, config, checkout, variant):
        runner = FakeRunner().on("git", "symbolic-ref", returncode=1)
        runner.on(INSTALL_ALL, effect=_produce("bin"))
        _build(config, runner, checkout, variant)
        assert runner.commands("git", "pull") == []

    def test_non_positive_jobs_rejected(self, config, checkout, variant):
        with pytest.raises(BuildError):
            _build(config, FakeRunner(), checkout, variant, jobs=0)


# ---------------------------------------------------------------------------
# Direct compiler fallback
# ---------------------------------------------------------------------------


class TestDirectCompiler:
    @pytest.fixture
    def bare_checkout(self, variant):
        return make_working_copy(variant.working_copy, install_script=False)

    def test_requires_confirmation(self, config, bare_checkout, variant):
        runner = FakeRunner()
        prompter = ScriptedPrompter(confirms=[False])

        with pytest.raises(OperationCancelled):
            _build(config, runner, bare_checkout, variant, prompter=prompter)

        assert runner.commands("cargo") == []
        assert "cargo-install-all.sh" in prompter.questions[0]

    def test_confirmed_build_uses_compiler_output(self, config, bare_checkout, variant):
        runner = FakeRunner().on("cargo", "build", effect=_produce("target/release"))

        result = _build(config, runner, bare_checkout, variant, prompter=ScriptedPrompter(confirms=[True]), jobs=6)

        assert result.procedure == BuildProcedure.DIRECT_COMPILER
        assert result.output_dir == bare_checkout / "target" / "release"
        assert runner.commands("cargo") == [["cargo", "build", "--release", "-j", "6"]]

    def test_wrapper_in_checkout_is_preferred(self, config, bare_checkout, variant):
        wrapper = bare_checkout / "cargo"
        wrapper.write_text("#!/bin/sh\n")
        wrapper.chmod(0o755)
        runner = FakeRunner().on("./cargo", effect=_produce("target/release"))

        _build(config, runner, bare_checkout, variant, prompter=ScriptedPrompter(confirms=[True]))

        assert runner.commands("./cargo")[0][:3] == ["./cargo", "build", "--release"]

    def test_compiler_failure_is_fatal(self, config, bare_checkout, variant):
        runner = FakeRunner().on("cargo", returncode=101)
        with pytest.raises(BuildError):
            _build(config, runner, bare_checkout, variant, prompter=ScriptedPrompter(confirms=[True]))
