"""Version Store — one directory per VersionKey holding a build's artifacts.

Storage layout: {base}/{version_key}/{artifacts_subdir}/...
The base also holds the Active Release Pointer, its timestamped backups
and the advisory lock file; none of those are versions.

Entries are written through a hidden staging directory and renamed into
place only once the sync succeeded, so a reader never sees a partial
entry. A stored entry is never overwritten: building a key again adds a
"<key>@<timestamp>" entry. Deletion happens only through the Cleanup
Manager.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

from relman.core.errors import InvalidRevisionError, SynchronizationError
from relman.core.filesystem import directory_size, ensure_owned_directory
from relman.core.runner import CommandRunner
from relman.models.outcomes import StepResult
from relman.models.versions import (
    BACKUP_MARKER,
    InvalidVersionKeyError,
    VersionEntry,
    rebuild_key,
    sanitize_revision,
    version_sort_key,
)

logger = logging.getLogger(__name__)

_STAGING_PREFIX = ".staging-"


class VersionStore:
    """Directory-per-version artifact store.

    Parameters
    ----------
    base_path:
        Root directory (``compiled_base_dir``).
    runner:
        Backend for ``rsync`` and privileged ownership commands.
    artifacts_subdir:
        Name of the artifact directory inside each entry.
    pointer_name:
        Name of the Active Release Pointer, which is never a version.
    use_sudo:
        Create/own the root with elevated privileges.
    """

    def __init__(
        self,
        base_path: Path,
        runner: CommandRunner,
        *,
        artifacts_subdir: str = "bin",
        pointer_name: str = "active_release",
        use_sudo: bool = False,
    ) -> None:
        self._base = Path(base_path)
        self._runner = runner
        self._artifacts_subdir = artifacts_subdir
        self._pointer_name = pointer_name
        self._use_sudo = use_sudo

    @property
    def base(self) -> Path:
        return self._base

    def ensure_root(self) -> StepResult:
        """Create and own the store root, exactly like a working copy."""
        return ensure_owned_directory(
            self._base, runner=self._runner, use_sudo=self._use_sudo, step="store"
        )

    def key_for(self, revision: str) -> str:
        """Sanitize *revision* into this store's VersionKey."""
        try:
            return sanitize_revision(revision, reserved=(self._pointer_name,))
        except InvalidVersionKeyError as exc:
            raise InvalidRevisionError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def entry_path(self, key: str) -> Path:
        return self._base / key

    def artifact_dir(self, key: str) -> Path:
        return self._base / key / self._artifacts_subdir

    def _is_version_dir(self, path: Path) -> bool:
        name = path.name
        return (
            path.is_dir()
            and not path.is_symlink()
            and not name.startswith(".")
            and name != self._pointer_name
            and BACKUP_MARKER not in name
        )

    def _entry_for(self, path: Path) -> VersionEntry:
        return VersionEntry(
            key=path.name,
            path=path,
            artifact_dir=path / self._artifacts_subdir,
            created_at=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def materialize(self, key: str, source_dir: Path) -> VersionEntry:
        """Copy *source_dir* byte-for-byte into a new entry for *key*.

        Contents, permissions, hard links and ACLs are preserved (``rsync
        -aHA``). Existing entries are never touched: when *key* is already
        stored the build is kept under a rebuild key (``<key>@<timestamp>``)
        and the returned entry carries that key.
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise SynchronizationError(f"Build output directory {source_dir} does not exist")

        self._base.mkdir(parents=True, exist_ok=True)
        staging = self._base / f"{_STAGING_PREFIX}{key}-{uuid.uuid4().hex[:8]}"
        staged_artifacts = staging / self._artifacts_subdir
        try:
            staged_artifacts.mkdir(parents=True)
        except OSError as exc:
            raise SynchronizationError(f"Cannot create staging directory {staging}: {exc}") from exc

        logger.info("Syncing %s -> %s", source_dir, staged_artifacts)
        result = self._runner.run(["rsync", "-aHA", f"{source_dir}/", f"{staged_artifacts}/"])
        if not result.ok:
            shutil.rmtree(staging, ignore_errors=True)
            raise SynchronizationError(
                f"rsync from {source_dir} failed (exit {result.returncode}); store unchanged"
            )

        final = self._free_entry_path(key)
        try:
            staging.rename(final)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise SynchronizationError(f"Cannot move staged entry into {final}: {exc}") from exc

        entry = self._entry_for(final)
        logger.info("Stored version %s at %s", entry.key, entry.artifact_dir)
        return entry

    def _free_entry_path(self, key: str) -> Path:
        candidate = self.entry_path(key)
        if not (candidate.exists() or candidate.is_symlink()):
            return candidate
        stem = rebuild_key(key, datetime.now())
        candidate = self._base / stem
        counter = 1
        while candidate.exists() or candidate.is_symlink():
            candidate = self._base / f"{stem}-{counter}"
            counter += 1
        logger.info("%s is already stored; keeping this build as %s", key, candidate.name)
        return candidate

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, key: str) -> VersionEntry | None:
        path = self.entry_path(key)
        if not self._is_version_dir(path):
            return None
        return self._entry_for(path)

    def list_entries(self) -> list[VersionEntry]:
        """All VersionEntries, naturally version-sorted. Backups and the pointer excluded."""
        if not self._base.is_dir():
            return []
        paths = [p for p in self._base.iterdir() if self._is_version_dir(p)]
        paths.sort(key=lambda p: version_sort_key(p.name))
        return [self._entry_for(p) for p in paths]

    def size_of(self, key: str) -> int:
        path = self.entry_path(key)
        return directory_size(path) if path.is_dir() else 0

    # ------------------------------------------------------------------
    # Delete (Cleanup Manager only)
    # ------------------------------------------------------------------

    def remove(self, key: str) -> None:
        """Recursively delete the entry for *key*. Irreversible."""
        path = self.entry_path(key)
        if not self._is_version_dir(path):
            raise FileNotFoundError(f"No stored version {key!r} at {path}")
        shutil.rmtree(path)
        logger.info("Deleted stored version %s", key)
