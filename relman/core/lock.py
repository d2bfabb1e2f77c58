"""Advisory lock serializing mutating operations on one Version Store.

upgrade, rollback and clean hold the lock for their whole duration; a
second invocation fails fast instead of racing on the Active Release
Pointer. The kernel drops an ``flock`` when the process dies, so a crashed
run never leaves a stale lock behind.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType

from relman.core.errors import OperationInProgressError

logger = logging.getLogger(__name__)


class ReleaseLock:
    """Non-blocking exclusive ``flock`` on a lock file.

    Usage::

        with ReleaseLock(config.lock_path):
            ...
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if self._fd is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            holder = os.read(fd, 64).decode(errors="replace").strip() or "unknown"
            os.close(fd)
            raise OperationInProgressError(
                f"Another relman operation holds {self.path} (pid {holder}); "
                "wait for it to finish and retry."
            ) from None

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("Acquired %s", self.path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            os.ftruncate(self._fd, 0)
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Released %s", self.path)

    def __enter__(self) -> ReleaseLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
