"""
L4 Execution — Cross-process install lock.

A marker file under the install root.  Its existence, not its
content, means "an install is running"; the content is a millisecond
timestamp kept for diagnostics only.

Every operation is best-effort: a lock that cannot be read counts as
free, and a lock that cannot be written or removed is logged and
otherwise ignored.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

LOCK_FILE = "install.lock"


class InstallLock:
    """File-based mutual exclusion for one install root."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @classmethod
    def for_root(cls, install_root: Path) -> InstallLock:
        return cls(install_root / LOCK_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def is_locked(self) -> bool:
        try:
            return self._path.exists()
        except OSError as exc:
            logger.debug("Cannot stat install lock %s: %s", self._path, exc)
            return False

    def acquire(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(str(int(time.time() * 1000)), encoding="utf-8")
            logger.debug("Install lock acquired: %s", self._path)
        except OSError as exc:
            logger.warning("Could not write install lock %s: %s", self._path, exc)

    def release(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
            logger.debug("Install lock released: %s", self._path)
        except OSError as exc:
            logger.warning("Could not remove install lock %s: %s", self._path, exc)

    def force_clear(self) -> bool:
        """Remove a lock left behind by a crashed run.

        Returns:
            Whether a lock was present.
        """
        present = self.is_locked()
        if present:
            logger.info("Force-clearing install lock %s (created %s)", self._path, self.created_at())
        self.release()
        return present

    def created_at(self) -> int | None:
        """Millisecond timestamp written by ``acquire``, if readable."""
        try:
            return int(self._path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    @contextmanager
    def held(self) -> Iterator[InstallLock]:
        """Hold the lock for the duration of the block, releasing on any exit."""
        self.acquire()
        try:
            yield self
        finally:
            self.release()
