import threading
from pathlib import Path
from typing import List

import pytest

from dicomsorter.exceptions import LockError
from dicomsorter.lock import ExclusiveRunLock


class FakeLock:
    """Stands in for fasteners.InterProcessLock, answering from a script.

    Each entry of `script` is the result of one acquire attempt: True,
    False, or an exception instance to raise.
    """

    created: List["FakeLock"] = []

    def __init__(self, path: Path, script: list) -> None:
        self.path = path
        self.script = script
        self.acquired = False
        self.released = False
        FakeLock.created.append(self)

    def acquire(self, blocking: bool = True) -> bool:
        assert blocking is False
        result = self.script.pop(0)
        if isinstance(result, Exception):
            raise result
        self.acquired = result
        return result

    def release(self) -> None:
        self.acquired = False
        self.released = True


@pytest.fixture(autouse=True)
def reset_created():
    FakeLock.created = []


def factory(script: list):
    return lambda path: FakeLock(path, script)


def test_acquire_first_try(tmp_path):
    sleeps: List[float] = []
    lock = ExclusiveRunLock(
        tmp_path / "dicomd.lock", sleep=sleeps.append, lock_factory=factory([True])
    )

    with lock:
        assert lock.acquired

    assert not lock.acquired
    assert FakeLock.created[0].released
    assert sleeps == []


def test_waits_while_held(tmp_path):
    sleeps: List[float] = []
    lock = ExclusiveRunLock(
        tmp_path / "dicomd.lock",
        retry_delay=10.0,
        sleep=sleeps.append,
        lock_factory=factory([False, False, True]),
    )

    lock.acquire()

    assert lock.acquired
    assert sleeps == [10.0, 10.0]


def test_invalid_handle_is_reopened(tmp_path):
    sleeps: List[float] = []
    lock = ExclusiveRunLock(
        tmp_path / "dicomd.lock",
        sleep=sleeps.append,
        lock_factory=factory([threading.ThreadError("stale"), True]),
    )

    lock.acquire()

    assert len(FakeLock.created) == 2
    assert lock.acquired
    assert sleeps == [10.0]


def test_unopenable_lock_file(tmp_path):
    lock = ExclusiveRunLock(
        tmp_path / "dicomd.lock",
        sleep=lambda delay: None,
        lock_factory=factory([PermissionError("denied")]),
    )

    with pytest.raises(LockError) as excinfo:
        lock.acquire()
    assert excinfo.value.exit_code == 4
    assert "denied" in str(excinfo.value)


def test_gives_up_after_max_attempts(tmp_path):
    sleeps: List[float] = []
    lock = ExclusiveRunLock(
        tmp_path / "dicomd.lock",
        max_attempts=3,
        sleep=sleeps.append,
        lock_factory=factory([False, False, False]),
    )

    with pytest.raises(LockError, match="still held after 3 attempts"):
        lock.acquire()
    assert len(sleeps) == 2


def test_release_without_acquire_is_a_no_op(tmp_path):
    lock = ExclusiveRunLock(tmp_path / "dicomd.lock", lock_factory=factory([]))
    lock.release()
    assert not FakeLock.created[0].released


def test_real_lock_file(tmp_path):
    path = tmp_path / "dicomd.lock"
    with ExclusiveRunLock(path, max_attempts=1) as lock:
        assert lock.acquired
        assert path.exists()
    assert not lock.acquired
