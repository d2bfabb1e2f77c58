"""Error taxonomy for fatal conditions.

Each error names the step that failed so the operator knows where to look.
Warnings never raise; they travel as DEGRADED ``StepResult`` values.
"""

from __future__ import annotations

from pathlib import Path


class ReleaseError(RuntimeError):
    """Base for every fatal relman condition."""

    step: str = "release"

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        if step is not None:
            self.step = step


class InvalidRevisionError(ReleaseError):
    step = "revision"


class ResolutionError(ReleaseError):
    """Working copy or store root cannot be created, owned or cloned."""

    step = "resolve"


class CheckoutError(ReleaseError):
    step = "checkout"


class SubmoduleSyncError(ReleaseError):
    step = "submodules"


class BuildError(ReleaseError):
    """The critical binary is nowhere to be found after the build."""

    step = "build"


class SynchronizationError(ReleaseError):
    step = "store"


class PointerError(ReleaseError):
    step = "pointer"


class PointerObstructedError(PointerError):
    """The pointer path exists but is not a symlink. Never adopted or removed."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"{path} exists but is not a symlink. Manual intervention required."
        )
        self.path = path


class PointerTargetError(PointerError):
    """The requested target has no executable service binary."""


class OperationInProgressError(ReleaseError):
    step = "lock"


class OperationCancelled(ReleaseError):
    """The operator declined a confirmation or chose cancel."""

    step = "prompt"


class NothingToSelectError(ReleaseError):
    """No stored version is eligible for the requested operation."""

    step = "select"
