"""Cleanup Manager — reclaim disk space from stored versions.

Three explicit phases:

1. ``plan()``: validate a multi-selection against the deletable entries
   (the active entry is never one of them) and size each item.
2. ``confirm()``: the operator types the confirmation token; anything
   else cancels with zero deletions.
3. ``execute()``: delete each planned entry, recording a per-item result;
   one failure does not stop the rest.

Pointer backups are symlinks outside the version listing and are never
candidates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from relman.contrib.prompts import Prompter
from relman.core.active_pointer import ActiveReleasePointer
from relman.core.errors import OperationCancelled
from relman.core.filesystem import format_size
from relman.core.version_store import VersionStore
from relman.models.outcomes import (
    CleanupItem,
    CleanupPlan,
    CleanupReport,
    DeletionResult,
    StepResult,
)
from relman.models.versions import VersionEntry

logger = logging.getLogger(__name__)


class CleanupManager:
    """Plans, confirms and executes deletion of stored versions.

    Parameters
    ----------
    store:
        The Version Store to clean.
    pointer:
        Used to exclude the active version.
    prompter:
        Collects the selection and the typed confirmation.
    confirm_token:
        The exact word (case-insensitive) the operator must type.
    """

    def __init__(
        self,
        store: VersionStore,
        pointer: ActiveReleasePointer,
        prompter: Prompter,
        *,
        confirm_token: str = "yes",
    ) -> None:
        self._store = store
        self._pointer = pointer
        self._prompter = prompter
        self._confirm_token = confirm_token

    def deletable(self) -> list[VersionEntry]:
        active = self._pointer.active_key()
        return [e for e in self._store.list_entries() if e.key != active]

    def select(self) -> CleanupPlan:
        """Ask the operator which deletable entries to remove."""
        candidates = self.deletable()
        if not candidates:
            return CleanupPlan()
        indices = self._prompter.select_many(
            "Select versions to delete:", [e.key for e in candidates]
        )
        return self.plan(candidates, indices)

    def plan(self, candidates: list[VersionEntry], indices: Iterable[int]) -> CleanupPlan:
        items: list[CleanupItem] = []
        rejected: list[str] = []
        seen: set[int] = set()
        for index in indices:
            if not 0 <= index < len(candidates):
                rejected.append(str(index + 1))
                logger.warning("%d is out of range. Skipping.", index + 1)
                continue
            if index in seen:
                continue
            seen.add(index)
            entry = candidates[index]
            items.append(CleanupItem(entry=entry, size_bytes=self._store.size_of(entry.key)))
        return CleanupPlan(items=items, rejected=rejected)

    def confirm(self, plan: CleanupPlan) -> None:
        question = (
            f"Permanently delete {len(plan.items)} version(s), freeing "
            f"{format_size(plan.total_bytes)}? Type '{self._confirm_token}' to confirm"
        )
        reply = self._prompter.ask(question, default="")
        if reply.strip().lower() != self._confirm_token.lower():
            raise OperationCancelled("Cleanup cancelled; nothing was deleted.", step="clean")

    def execute(self, plan: CleanupPlan) -> CleanupReport:
        active = self._pointer.active_key()
        deletions: list[DeletionResult] = []
        for item in plan.items:
            key = item.entry.key
            if key == active:
                detail = f"{key} became active; not deleted"
                logger.error(detail)
                deletions.append(DeletionResult(key=key, result=StepResult.failure("delete", detail)))
                continue
            try:
                self._store.remove(key)
            except OSError as exc:
                detail = f"Failed to delete {key}: {exc}"
                logger.error(detail)
                deletions.append(DeletionResult(key=key, result=StepResult.failure("delete", detail)))
                continue
            deletions.append(
                DeletionResult(
                    key=key,
                    result=StepResult.success("delete", format_size(item.size_bytes)),
                    freed_bytes=item.size_bytes,
                )
            )
        report = CleanupReport(plan=plan, deletions=deletions)
        logger.info(
            "Cleanup finished: %d deleted, %d failed, %s freed",
            len(deletions) - len(report.failures), len(report.failures), format_size(report.freed_bytes),
        )
        return report
