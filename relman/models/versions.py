"""Version Store and Active Release Pointer models."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

# Backups are named "<pointer>_<timestamp>_before_<operation>".
BACKUP_MARKER = "_before_"

# Rebuilds of a stored key are kept as "<key>@<timestamp>". "@" is always
# encoded in a sanitized key, so it only ever appears as this separator.
REBUILD_SEPARATOR = "@"
REBUILD_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

# Only the path separators, the rebuild separator and the escape character
# itself are encoded, so ordinary tag names stay readable on disk.
_ENCODE = {"%": "%25", "/": "%2F", "\\": "%5C", "@": "%40"}
_DECODE_RE = re.compile(r"%(25|2F|5C|40)")
_DECODE = {"25": "%", "2F": "/", "5C": "\\", "40": "@"}


class InvalidVersionKeyError(ValueError):
    """Raised when a revision cannot be turned into a safe directory name."""


def sanitize_revision(revision: str, *, reserved: tuple[str, ...] = ()) -> str:
    """Map a revision to a filesystem-safe, collision-free VersionKey.

    The mapping is injective: ``%`` is escaped before separators are
    encoded, so ``a/b`` and ``a%2Fb`` produce different keys.
    """
    if not revision or not revision.strip():
        raise InvalidVersionKeyError("Revision must not be empty")
    if revision.startswith((".", "-")):
        raise InvalidVersionKeyError(
            f"Revision {revision!r} must not start with '.' or '-'"
        )
    if BACKUP_MARKER in revision:
        raise InvalidVersionKeyError(
            f"Revision {revision!r} contains {BACKUP_MARKER!r}, which is reserved for pointer backups"
        )
    key = "".join(_ENCODE.get(ch, ch) for ch in revision)
    if key in reserved:
        raise InvalidVersionKeyError(f"Revision {revision!r} is a reserved name")
    return key


def rebuild_key(key: str, stamp: datetime) -> str:
    """Key for a later build of an already-stored *key*."""
    return f"{key}{REBUILD_SEPARATOR}{stamp.strftime(REBUILD_TIMESTAMP_FORMAT)}"


def revision_from_key(key: str) -> str:
    """Inverse of :func:`sanitize_revision`; a rebuild suffix is dropped."""
    base, _, _ = key.partition(REBUILD_SEPARATOR)
    return _DECODE_RE.sub(lambda m: _DECODE[m.group(1)], base)


def version_sort_key(name: str) -> tuple:
    """Natural ordering comparable to ``sort -V`` (``v1.9`` < ``v1.10``).

    ``re.split`` with a capture group alternates text and digit runs, so
    positions always line up by type across names.
    """
    parts = re.split(r"(\d+)", name)
    return tuple(int(p) if i % 2 else p for i, p in enumerate(parts))


class VersionEntry(BaseModel):
    """A stored artifact set for one VersionKey. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    key: str
    path: Path  # <base>/<key>
    artifact_dir: Path  # <base>/<key>/<artifacts>
    created_at: datetime

    @property
    def revision(self) -> str:
        return revision_from_key(self.key)


class PointerState(str, Enum):
    """What currently occupies the Active Release Pointer path."""

    ABSENT = "absent"
    LINKED = "linked"
    OBSTRUCTED = "obstructed"  # exists but is not a symlink


class PointerBackup(BaseModel):
    """A renamed former pointer, kept as an audit trail."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    target: Path | None = None
    operation: str = ""
    created_at: datetime | None = None
