"""
Output directory locking.

Two builds writing into the same output directory would interleave their
installs, so a Builder holds a file lock for the output directory for the
whole duration of Build. The lock file lives next to the directory rather
than inside it, keeping the staged tree free of foreign files.

Usage:
    from distrobuilder.core.locking import output_directory_lock

    with output_directory_lock(Path("/srv/out/zstd")):
        # Exclusive access to /srv/out/zstd
        pass
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

from distrobuilder.core.exceptions import OutputLockedError

logger = logging.getLogger(__name__)


def lock_path_for(directory: Path) -> Path:
    """
    Get the lock file path guarding a directory.

    Args:
        directory: Directory to guard

    Returns:
        Path to a hidden sibling lock file

    Example:
        >>> lock_path_for(Path('/srv/out/zstd'))
        PosixPath('/srv/out/.zstd.lock')
    """
    directory = Path(directory).resolve()
    return directory.parent / f".{directory.name}.lock"


@contextmanager
def output_directory_lock(directory: Path, timeout: float = 0):
    """
    Hold an exclusive lock on an output directory.

    Args:
        directory: Output directory to lock
        timeout: Seconds to wait for the lock (default: fail immediately)

    Yields:
        Path to the lock file

    Raises:
        OutputLockedError: If another process holds the lock
    """
    lock_path = lock_path_for(directory)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path), timeout=timeout)

    try:
        lock.acquire()
    except LockTimeout as e:
        raise OutputLockedError(
            f"Output directory {directory} is locked by another build ({lock_path})"
        ) from e

    logger.debug(f"Acquired output lock: {lock_path}")
    try:
        yield lock_path
    finally:
        lock.release()
        logger.debug(f"Released output lock: {lock_path}")
