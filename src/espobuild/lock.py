# lock.py
# Exclusive lock on the working directory for the length of one command.
from __future__ import annotations

import os
from pathlib import Path

from .config import ConfigurationError

LOCK_NAME = ".espobuild.lock"


class LockHeld(ConfigurationError):
    """Another invocation is running against the same working directory."""


class WorkdirLock:
    """
    Context manager creating `<cwd>/.espobuild.lock` exclusively.

    The file holds the owner's pid. A stale lock left by a killed
    process has to be removed by hand.
    """

    def __init__(self, cwd: str | Path):
        self.path = Path(cwd) / LOCK_NAME
        self._held = False

    def acquire(self) -> None:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            owner = self.path.read_text(encoding="utf-8").strip() or "?"
            raise LockHeld(
                f"{self.path} exists (pid {owner}); another build is running "
                f"or a previous one was killed. Remove the file if stale."
            )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(str(os.getpid()))
        self._held = True

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    def __enter__(self) -> "WorkdirLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
