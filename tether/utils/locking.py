"""Advisory file locks shared between terminals."""

import fcntl
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from tether.utils.errors import LockTimeoutError
from tether.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def file_lock(lock_path: Path, timeout: float = 10.0, poll_interval: float = 0.1) -> Iterator[None]:
    """Hold an exclusive flock on lock_path for the duration of the block.

    The lock lives on a sidecar file rather than the data file itself, since the
    data file may be replaced by rename while the lock is held.

    Raises:
        LockTimeoutError: If the lock is still held elsewhere after timeout seconds.
    """
    lock_path = Path(lock_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("w", encoding="utf-8") as lock_file:
        start = time.monotonic()
        while True:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() - start > timeout:
                    raise LockTimeoutError(lock_path, timeout)
                time.sleep(poll_interval)
        logger.debug(f"Acquired lock {lock_path}")
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
            logger.debug(f"Released lock {lock_path}")
