"""Explicit step results and operation reports.

Every step boundary returns a ``StepResult`` with SUCCESS, DEGRADED or
FAILURE. Reports aggregate them for rendering; a FAILURE at a hard gate is
raised as the matching ``ReleaseError`` by the component that owns the step.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from relman.models.variants import SourceVariant
from relman.models.versions import PointerBackup, PointerState, VersionEntry


class StepStatus(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILURE = "failure"


class StepResult(BaseModel):
    """Outcome of a single step. ``detail`` explains anything but SUCCESS."""

    model_config = ConfigDict(frozen=True)

    step: str
    status: StepStatus
    detail: str = ""

    @classmethod
    def success(cls, step: str, detail: str = "") -> StepResult:
        return cls(step=step, status=StepStatus.SUCCESS, detail=detail)

    @classmethod
    def degraded(cls, step: str, detail: str) -> StepResult:
        return cls(step=step, status=StepStatus.DEGRADED, detail=detail)

    @classmethod
    def failure(cls, step: str, detail: str) -> StepResult:
        return cls(step=step, status=StepStatus.FAILURE, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FAILURE


class BuildProcedure(str, Enum):
    INSTALL_ALL = "install_all"  # project-provided, embeds build metadata
    DIRECT_COMPILER = "direct_compiler"  # lower-guarantee fallback


class BuildResult(BaseModel):
    """What the Build Orchestrator produced and where the artifacts are."""

    model_config = ConfigDict(frozen=True)

    revision: str
    variant: SourceVariant
    commit: str
    procedure: BuildProcedure
    outcome: StepStatus
    output_dir: Path
    steps: list[StepResult] = Field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [s.detail for s in self.steps if s.status == StepStatus.DEGRADED]


class SwapResult(BaseModel):
    """Terminal state of one Active Release Pointer transition."""

    model_config = ConfigDict(frozen=True)

    operation: str
    entry: VersionEntry
    pointer: Path
    backup: PointerBackup | None = None


class VerificationReport(BaseModel):
    """Direct-path and environment-resolution checks of the new pointer."""

    model_config = ConfigDict(frozen=True)

    direct: StepResult
    environment: StepResult
    reported_version: str = ""

    @property
    def warnings(self) -> list[str]:
        return [r.detail for r in (self.direct, self.environment) if r.status != StepStatus.SUCCESS]


class RestartReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested: bool
    result: StepResult | None = None
    max_delinquent_stake: int | None = None
    min_idle_time: int | None = None


class UpgradeReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    build: BuildResult
    entry: VersionEntry
    swap: SwapResult
    verification: VerificationReport
    restart: RestartReport = RestartReport(requested=False)

    @property
    def warnings(self) -> list[str]:
        return self.build.warnings + self.verification.warnings


class RollbackReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous_key: str | None
    swap: SwapResult
    verification: VerificationReport
    restart: RestartReport = RestartReport(requested=False)


class CleanupItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry: VersionEntry
    size_bytes: int


class CleanupPlan(BaseModel):
    """Validated multi-selection with per-item and total reclaimable space."""

    model_config = ConfigDict(frozen=True)

    items: list[CleanupItem] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(item.size_bytes for item in self.items)

    @property
    def empty(self) -> bool:
        return not self.items


class DeletionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    result: StepResult
    freed_bytes: int = 0


class CleanupReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan: CleanupPlan
    deletions: list[DeletionResult] = Field(default_factory=list)

    @property
    def freed_bytes(self) -> int:
        return sum(d.freed_bytes for d in self.deletions)

    @property
    def failures(self) -> list[DeletionResult]:
        return [d for d in self.deletions if d.result.status == StepStatus.FAILURE]


class StoredVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry: VersionEntry
    size_bytes: int
    active: bool = False


class StoreStatus(BaseModel):
    """Read-only snapshot of the Version Store and its pointer."""

    model_config = ConfigDict(frozen=True)

    base: Path
    pointer: Path
    pointer_state: PointerState
    active_key: str | None = None
    versions: list[StoredVersion] = Field(default_factory=list)
    backups: list[PointerBackup] = Field(default_factory=list)
