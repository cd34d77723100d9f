"""PID lock file so only one backupz run touches a dataset at a time."""
from __future__ import annotations

import logging
import os

from filelock import FileLock, Timeout


class LockError(Exception):
    pass


def _read_pid(path: str) -> int | None:
    try:
        with open(path) as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


class PidLock:
    """
    Hold path for the duration of a ``with`` block.

    Mutual exclusion comes from a kernel lock on ``<path>.flock``, which
    dies with its owner, so a crashed run never blocks the next one. path
    itself holds the owner's PID for diagnostics and is removed on every
    exit path; failure to remove it is only logged.
    """

    def __init__(self, path: str, logger: logging.Logger | None = None):
        self.path = path
        self.logger = logger or logging.getLogger("backupz")
        self._flock = FileLock(f"{path}.flock")
        self.held = False

    def acquire(self) -> None:
        try:
            self._flock.acquire(blocking=False)
        except Timeout as e:
            pid = _read_pid(self.path)
            holder = f"pid {pid}" if pid is not None else "unknown pid"
            raise LockError(f"Another backupz is running ({holder}, lock {self.path})") from e
        except OSError as e:
            raise LockError(f"Can't create lock file {self.path}: {e}") from e

        try:
            with open(self.path, "w") as f:
                f.write(f"{os.getpid()}\n")
        except OSError as e:
            self._flock.release()
            raise LockError(f"Can't create lock file {self.path}: {e.strerror}") from e
        self.held = True

    def release(self) -> None:
        if not self.held:
            return
        self.held = False
        try:
            os.unlink(self.path)
        except OSError as e:
            self.logger.warning(f"Could not remove lock file {self.path}: {e}")
        finally:
            self._flock.release()

    def __enter__(self) -> "PidLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
