"""Manager configuration — env-driven, immutable, built once per process.

Every path, name and threshold the manager uses lives here. The object is
frozen and passed explicitly to each component; nothing reads ambient
module state.

Examples
--------
Override via environment::

    export RELMAN_COMPILED_BASE_DIR=/srv/compiled
    export RELMAN_BUILD_JOBS=8
    export RELMAN_CUSTOM_OUTPUT_ROOT=/mnt/fast/target
    export RELMAN_USE_SUDO=false

Or via .env file::

    RELMAN_SERVICE_BINARY_NAME=agave-validator
    RELMAN_LEDGER_DIR=/mnt/ledger
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from relman.models.variants import (
    DEFAULT_CLASSIFICATION_RULES,
    ClassificationRule,
    MatchMode,
    SourceVariant,
    VariantKind,
    default_variants,
)


class ConfigurationError(ValueError):
    """Raised when the configuration violates a startup constraint."""


class ManagerConfig(BaseSettings):
    """Configuration with RELMAN_* environment overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RELMAN_",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    # Version Store layout
    compiled_base_dir: Path = Field(default_factory=lambda: Path.home() / "data" / "compiled")
    active_pointer_name: str = "active_release"
    artifacts_subdir: str = "bin"
    lock_file_name: str = ".relman.lock"

    # Service
    service_binary_name: str = "agave-validator"
    version_flag: str = "-V"
    ledger_dir: Path = Field(default_factory=lambda: Path.home() / "ledger")

    # Build toolchain
    build_jobs: int = 2
    install_all_script: str = "scripts/cargo-install-all.sh"
    collected_output_subdir: str = "bin"
    compiler_output_subdir: str = "target"
    compiler_profile: str = "release"
    custom_output_root: Path | None = None
    compiler_command: str = "cargo"
    build_env: dict[str, str] = Field(
        default_factory=lambda: {"RUSTFLAGS": "-O -C target-cpu=native"}
    )
    commit_env_var: str = "CI_COMMIT"
    jobs_env_var: str = "CARGO_BUILD_JOBS"

    # Host
    use_sudo: bool = True

    # Source variants
    variants: list[SourceVariant] = Field(default_factory=default_variants)
    classification_rules: list[ClassificationRule] = Field(
        default_factory=lambda: list(DEFAULT_CLASSIFICATION_RULES)
    )
    list_limit: int = 20

    # Restart
    default_max_delinquent_stake: int = 5
    default_min_idle_time: int = 5
    restart_no_wait: bool = True

    # Cleanup
    cleanup_confirm_token: str = "yes"

    # Observability
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_constraints(self) -> ManagerConfig:
        violations: list[str] = []

        if self.build_jobs <= 0:
            violations.append(f"build_jobs must be a positive integer, got {self.build_jobs}")

        kinds = [v.kind for v in self.variants]
        if len(kinds) != len(set(kinds)):
            violations.append("each variant kind may be configured only once")
        names = [v.name for v in self.variants]
        if len(names) != len(set(names)):
            violations.append("variant names must be unique")

        for rule in self.classification_rules:
            if rule.kind not in kinds:
                violations.append(f"classification rule for {rule.kind.value} has no configured variant")
            if rule.match != MatchMode.DEFAULT and not rule.token:
                violations.append(f"{rule.match.value} rule for {rule.kind.value} needs a token")

        defaults = [r for r in self.classification_rules if r.match == MatchMode.DEFAULT]
        if len(defaults) != 1 or self.classification_rules[-1].match != MatchMode.DEFAULT:
            violations.append("exactly one default classification rule is required, and it must be last")

        if not self.cleanup_confirm_token:
            violations.append("cleanup_confirm_token must not be empty")

        if violations:
            raise ConfigurationError(
                "Invalid relman configuration:\n" + "\n".join(f"  - {v}" for v in violations)
            )
        return self

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def pointer_path(self) -> Path:
        return self.compiled_base_dir / self.active_pointer_name

    @property
    def lock_path(self) -> Path:
        return self.compiled_base_dir / self.lock_file_name

    def variant_for(self, kind: VariantKind) -> SourceVariant:
        for variant in self.variants:
            if variant.kind == kind:
                return variant
        raise ConfigurationError(f"No variant configured for {kind.value}")

    def variant_named(self, name: str) -> SourceVariant | None:
        for variant in self.variants:
            if variant.name == name:
                return variant
        return None


def load_config(**overrides: Any) -> ManagerConfig:
    """Build the process-wide configuration once, at startup."""
    return ManagerConfig(**overrides)
