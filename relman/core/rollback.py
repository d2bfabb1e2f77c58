"""Rollback Selector — choose a stored version to re-activate."""

from __future__ import annotations

import logging

from relman.contrib.prompts import Prompter
from relman.core.active_pointer import ActiveReleasePointer
from relman.core.errors import NothingToSelectError, OperationCancelled
from relman.core.version_store import VersionStore
from relman.models.versions import VersionEntry

logger = logging.getLogger(__name__)

ACTIVE_MARKER = "(Currently Active)"


class RollbackSelector:
    """Offers every stored version except the active one.

    The active entry is listed for orientation but can never be chosen.
    Invalid choices re-prompt; cancel raises ``OperationCancelled``.
    """

    def __init__(self, store: VersionStore, pointer: ActiveReleasePointer, prompter: Prompter) -> None:
        self._store = store
        self._pointer = pointer
        self._prompter = prompter

    def options(self) -> tuple[list[VersionEntry], str | None]:
        entries = self._store.list_entries()
        return entries, self._pointer.active_key()

    def select(self) -> VersionEntry:
        entries, active = self.options()
        if not entries:
            raise NothingToSelectError(f"No stored versions in {self._store.base}")
        if all(e.key == active for e in entries):
            raise NothingToSelectError(
                f"The only stored version ({active}) is already active; nothing to roll back to"
            )

        labels = [
            f"{e.key} {ACTIVE_MARKER}" if e.key == active else e.key
            for e in entries
        ]
        question = "Select the version to roll back to:"
        while True:
            choice = self._prompter.select(question, labels)
            if choice is None:
                raise OperationCancelled("Rollback cancelled by operator.", step="select")
            if not 0 <= choice < len(entries):
                logger.warning("Invalid selection; choose a number from the list")
                continue
            entry = entries[choice]
            if entry.key == active:
                logger.warning("%s is already active; choose a different version", entry.key)
                continue
            logger.info("Selected %s for rollback", entry.key)
            return entry
