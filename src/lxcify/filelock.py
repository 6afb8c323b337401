"""
Exclusive file lock with timeout, used to guard rewrites of a container's LXC configuration.
"""

import errno
import fcntl
import time
from typing import IO, Optional


class FileLock:
    """
    Takes an `fcntl()` lock on a lock file, polling until it is available or the timeout expires.
    The lock file should be separate from the file being protected since the lock file is
    truncated on acquisition. It is never removed afterwards.

    Usage:
        with FileLock(f"{container_dir}/.config.lock", timeout_secs=30):
          <rewrite the configuration>
    """

    def __init__(self, lock_file: str, timeout_secs: float = 60.0, poll_interval: float = 0.5):
        """
        Initialize the lock on the given lock file.

        :param lock_file: the lock file which is created or truncated on acquisition
        :param timeout_secs: lock timeout in seconds (use negative for infinite wait)
        :param poll_interval: polling interval at which to check for lock to be available
        """
        self._lock_file = lock_file
        self._lock_fd: Optional[IO[str]] = None
        self._timeout = timeout_secs
        self._poll = poll_interval

    @property
    def lock_file(self) -> str:
        """path of the lock file"""
        return self._lock_file

    def _try_lock(self, lock_fd: IO[str]) -> bool:
        """try to acquire the lock once returning False if it is held by someone else"""
        try:
            fcntl.lockf(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except OSError as ex:
            if ex.errno in (errno.EACCES, errno.EAGAIN):
                return False
            raise

    def __enter__(self) -> "FileLock":
        lock_fd = open(self._lock_file, "w+", encoding="utf-8")
        try:
            deadline = None if self._timeout < 0 else time.monotonic() + self._timeout
            start = time.monotonic()
            while not self._try_lock(lock_fd):
                if deadline is not None and time.monotonic() >= deadline:
                    raise TimeoutError(f"Failed to lock '{self._lock_file}' in "
                                       f"{time.monotonic() - start:.1f} seconds")
                time.sleep(self._poll)
        except BaseException:
            lock_fd.close()
            raise
        self._lock_fd = lock_fd
        return self

    def __exit__(self, ex_type, ex_value, ex_traceback):  # type: ignore
        if self._lock_fd:
            fcntl.lockf(self._lock_fd, fcntl.LOCK_UN)
            self._lock_fd.close()
            self._lock_fd = None
