"""Active Release Pointer — the symlink the running service resolves through.

Transitions are explicit:

    ABSENT  --swap-->  LINKED
    LINKED  --swap-->  LINKED   (old link renamed to a timestamped backup)
    OBSTRUCTED                  (never touched; swap raises)

A swap only ever points at a VersionEntry whose service binary is
executable. The old link is first renamed to its backup, then the new
link is created under a temporary name and renamed over the pointer path.
Between those two renames the pointer path is briefly absent; if the new
link cannot be put in place, the backup is renamed back before the error
is raised.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime
from pathlib import Path

from relman.core.errors import PointerError, PointerObstructedError, PointerTargetError
from relman.models.outcomes import SwapResult
from relman.models.versions import BACKUP_MARKER, PointerBackup, PointerState, VersionEntry

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class ActiveReleasePointer:
    """The single symlink naming the currently deployed version.

    Parameters
    ----------
    path:
        Pointer location, ``{compiled_base_dir}/{active_pointer_name}``.
    service_binary_name:
        Executable that must exist in a target's artifact directory.
    """

    def __init__(self, path: Path, service_binary_name: str) -> None:
        self.path = Path(path)
        self.service_binary_name = service_binary_name

    @property
    def base(self) -> Path:
        return self.path.parent

    @property
    def binary_path(self) -> Path:
        """The service binary as reached through the pointer."""
        return self.path / self.service_binary_name

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def state(self) -> PointerState:
        if self.path.is_symlink():
            return PointerState.LINKED
        if self.path.exists():
            return PointerState.OBSTRUCTED
        return PointerState.ABSENT

    def target(self) -> Path | None:
        if not self.path.is_symlink():
            return None
        return Path(os.readlink(self.path))

    def active_key(self) -> str | None:
        """VersionKey the pointer resolves into, or ``None``.

        A link that resolves outside the store (or dangles) has no key.
        """
        if not self.path.is_symlink():
            return None
        resolved = self.path.resolve()
        try:
            relative = resolved.relative_to(self.base.resolve())
        except ValueError:
            return None
        parts = relative.parts
        if not parts or not (self.base / parts[0]).is_dir():
            return None
        return parts[0]

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def swap(self, entry: VersionEntry, operation: str) -> SwapResult:
        """Point at *entry*'s artifact directory, backing up any existing link."""
        binary = entry.artifact_dir / self.service_binary_name
        if not (binary.is_file() and os.access(binary, os.X_OK)):
            raise PointerTargetError(
                f"Refusing to activate {entry.key}: {binary} is missing or not executable"
            )

        state = self.state()
        if state == PointerState.OBSTRUCTED:
            raise PointerObstructedError(self.path)

        backup: PointerBackup | None = None
        if state == PointerState.LINKED:
            backup = self._back_up(operation)

        temp = self.base / f".{self.path.name}.{uuid.uuid4().hex[:8]}"
        try:
            temp.symlink_to(entry.artifact_dir, target_is_directory=True)
            temp.replace(self.path)
        except OSError as exc:
            if temp.is_symlink():
                temp.unlink()
            if backup is not None:
                self._restore(backup)
            raise PointerError(f"Failed to point {self.path} at {entry.artifact_dir}: {exc}") from exc

        logger.info("%s -> %s (%s)", self.path, entry.artifact_dir, operation)
        return SwapResult(operation=operation, entry=entry, pointer=self.path, backup=backup)

    def _back_up(self, operation: str) -> PointerBackup:
        stamp = datetime.now()
        stem = f"{self.path.name}_{stamp.strftime(BACKUP_TIMESTAMP_FORMAT)}{BACKUP_MARKER}{operation}"
        candidate = self.base / stem
        counter = 1
        while candidate.exists() or candidate.is_symlink():
            candidate = self.base / f"{stem}-{counter}"
            counter += 1

        previous = self.target()
        try:
            self.path.rename(candidate)
        except OSError as exc:
            raise PointerError(f"Failed to back up {self.path} to {candidate}: {exc}") from exc

        logger.info("Backed up previous pointer to %s", candidate)
        return PointerBackup(
            name=candidate.name,
            path=candidate,
            target=previous,
            operation=operation,
            created_at=stamp,
        )

    def _restore(self, backup: PointerBackup) -> None:
        """Put a just-taken backup back at the pointer path."""
        try:
            backup.path.rename(self.path)
        except OSError as exc:
            logger.error(
                "Could not restore %s from %s: %s; restore it by hand",
                self.path,
                backup.path,
                exc,
            )
            return
        logger.warning("Swap failed; pointer restored to %s", backup.target)

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def list_backups(self) -> list[PointerBackup]:
        """Former pointers, oldest first."""
        if not self.base.is_dir():
            return []
        prefix = f"{self.path.name}_"
        backups: list[PointerBackup] = []
        for candidate in sorted(self.base.iterdir(), key=lambda p: p.name):
            name = candidate.name
            if not (name.startswith(prefix) and BACKUP_MARKER in name and candidate.is_symlink()):
                continue
            stamp_text, _, operation = name[len(prefix):].partition(BACKUP_MARKER)
            try:
                created_at = datetime.strptime(stamp_text, BACKUP_TIMESTAMP_FORMAT)
            except ValueError:
                created_at = None
            backups.append(
                PointerBackup(
                    name=name,
                    path=candidate,
                    target=Path(os.readlink(candidate)),
                    operation=operation,
                    created_at=created_at,
                )
            )
        return backups
