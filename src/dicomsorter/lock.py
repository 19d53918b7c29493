"""
Process-wide exclusive lock.

The listener starts one sorter per completed study, and studies often
complete close together. Runs share the archive tree, so they take turns:
a run tries the lock without blocking and, while another run holds it,
sleeps a fixed delay and tries again.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Optional, Type

from fasteners import InterProcessLock  # type: ignore

from dicomsorter.exceptions import LockError
from dicomsorter.loggers import logger

DEFAULT_RETRY_DELAY = 10.0


class ExclusiveRunLock:
    """
    Non-blocking, retrying wrapper around :class:`fasteners.InterProcessLock`.

    Parameters
    ----------
    path : Path
        Lock file shared by all runs.
    retry_delay : float
        Seconds to wait between attempts.
    max_attempts : int | None
        Give up after this many attempts; None waits forever.
    sleep : Callable[[float], None]
        Sleep function, replaceable in tests.
    lock_factory : Callable[[Path], Any]
        Builds the underlying lock for a path.

    Examples
    --------
    >>> with ExclusiveRunLock(Path("/tmp/dicomd.lock")):
    ...     sort_study()
    """

    def __init__(
        self,
        path: Path,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        lock_factory: Callable[[Path], Any] = InterProcessLock,
    ) -> None:
        self.path = path
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._lock_factory = lock_factory
        self._lock = lock_factory(path)
        self.logger = logger.bind(lock=path)

    @property
    def acquired(self) -> bool:
        return bool(getattr(self._lock, "acquired", False))

    def acquire(self) -> None:
        """
        Block until the lock is held.

        Raises
        ------
        LockError
            If the lock file cannot be opened, or `max_attempts` ran out.
        """
        attempts = 0
        self.logger.debug("Trying to lock")
        while True:
            attempts += 1
            try:
                if self._lock.acquire(blocking=False):
                    self.logger.debug("Locked on", attempts=attempts)
                    return
            except threading.ThreadError as e:
                self.logger.warning("Lock handle no longer valid", error=str(e))
                self._lock = self._lock_factory(self.path)
            except OSError as e:
                raise LockError(self.path, reason=str(e)) from e

            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise LockError(
                    self.path, reason=f"still held after {attempts} attempts"
                )
            self.logger.info(
                f"Couldn't lock - waiting {self.retry_delay:g}s",
                attempts=attempts,
            )
            self._sleep(self.retry_delay)

    def release(self) -> None:
        if self.acquired:
            self._lock.release()
            self.logger.debug("Released lock")

    def __enter__(self) -> ExclusiveRunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.release()
