"""Directory ownership and disk-usage helpers.

Working copies and the Version Store root may live under paths the
operator cannot create directly, so creation and ownership go through
``sudo`` when configured. The same routine serves both.
"""

from __future__ import annotations

import getpass
import grp
import logging
import os
from pathlib import Path

from relman.core.errors import ResolutionError
from relman.core.runner import CommandRunner
from relman.models.outcomes import StepResult

logger = logging.getLogger(__name__)


def current_owner() -> str:
    """``user:group`` of the invoking process, as ``chown`` expects it."""
    user = getpass.getuser()
    try:
        group = grp.getgrgid(os.getgid()).gr_name
    except KeyError:
        group = str(os.getgid())
    return f"{user}:{group}"


def _is_owned_and_writable(path: Path) -> bool:
    return path.stat().st_uid == os.getuid() and os.access(path, os.W_OK)


def ensure_owned_directory(
    path: Path,
    *,
    runner: CommandRunner,
    use_sudo: bool,
    step: str = "resolve",
) -> StepResult:
    """Make sure *path* exists and belongs to the invoking user.

    A missing directory is created (elevated when ``use_sudo``) and chowned;
    any failure there raises ``ResolutionError``. An existing directory
    that is not owned or not writable is re-owned recursively; failure to
    do so is only DEGRADED, later steps will fail loudly if it matters.
    """
    path = Path(path)
    owner = current_owner()

    if not path.exists():
        logger.info("Creating %s owned by %s", path, owner)
        if use_sudo:
            made = runner.run(["sudo", "mkdir", "-p", str(path)])
            if not made.ok:
                raise ResolutionError(
                    f"Failed to create {path} with sudo (exit {made.returncode}). "
                    f"Check permissions on {path.parent} and sudo capabilities.",
                    step=step,
                )
            owned = runner.run(["sudo", "chown", owner, str(path)])
            if not owned.ok:
                raise ResolutionError(
                    f"Failed to set ownership of {path} to {owner} (exit {owned.returncode}).",
                    step=step,
                )
        else:
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ResolutionError(f"Failed to create {path}: {exc}", step=step) from exc
        return StepResult.success(step, f"created {path}")

    if not path.is_dir():
        raise ResolutionError(f"{path} exists but is not a directory", step=step)

    if _is_owned_and_writable(path):
        return StepResult.success(step)

    if use_sudo:
        logger.info("Normalizing ownership of %s to %s", path, owner)
        owned = runner.run(["sudo", "chown", "-R", owner, str(path)])
        if owned.ok:
            return StepResult.success(step, f"re-owned {path}")
    detail = f"{path} is not owned or writable by {owner}; later steps may fail"
    logger.warning(detail)
    return StepResult.degraded(step, detail)


def directory_size(path: Path) -> int:
    """Apparent size in bytes of everything under *path*, like ``du``.

    Symlinks are not followed and hard-linked files are counted once.
    """
    total = 0
    seen: set[tuple[int, int]] = set()
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            try:
                st = os.lstat(os.path.join(root, name))
            except OSError:
                continue
            inode = (st.st_dev, st.st_ino)
            if inode in seen:
                continue
            seen.add(inode)
            total += st.st_size
    return total


def format_size(num_bytes: int) -> str:
    """Human-readable binary size (``1.5 GiB``)."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    size = float(num_bytes)
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024
        if size < 1024:
            return f"{size:.1f} {unit}"
    return f"{size / 1024:.1f} TiB"
