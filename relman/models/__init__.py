"""relman data models — all Pydantic v2, all frozen (immutable)."""

from relman.models.outcomes import (
    BuildProcedure,
    BuildResult,
    CleanupItem,
    CleanupPlan,
    CleanupReport,
    DeletionResult,
    RestartReport,
    RollbackReport,
    StepResult,
    StepStatus,
    StoredVersion,
    StoreStatus,
    SwapResult,
    UpgradeReport,
    VerificationReport,
)
from relman.models.variants import (
    DEFAULT_CLASSIFICATION_RULES,
    Classification,
    ClassificationRule,
    MatchMode,
    SourceVariant,
    VariantKind,
    default_variants,
)
from relman.models.versions import (
    BACKUP_MARKER,
    InvalidVersionKeyError,
    PointerBackup,
    PointerState,
    VersionEntry,
    rebuild_key,
    revision_from_key,
    sanitize_revision,
    version_sort_key,
)

__all__ = [
    # variants
    "VariantKind",
    "MatchMode",
    "SourceVariant",
    "ClassificationRule",
    "Classification",
    "DEFAULT_CLASSIFICATION_RULES",
    "default_variants",
    # versions
    "BACKUP_MARKER",
    "InvalidVersionKeyError",
    "VersionEntry",
    "PointerState",
    "PointerBackup",
    "sanitize_revision",
    "rebuild_key",
    "revision_from_key",
    "version_sort_key",
    # outcomes
    "StepStatus",
    "StepResult",
    "BuildProcedure",
    "BuildResult",
    "SwapResult",
    "VerificationReport",
    "RestartReport",
    "UpgradeReport",
    "RollbackReport",
    "CleanupItem",
    "CleanupPlan",
    "DeletionResult",
    "CleanupReport",
    "StoredVersion",
    "StoreStatus",
]
