"""
Cross-process coordination for shared download artifacts.

Concurrent installer invocations share one deterministic download path per
artifact. A file lock next to the artifact serialises the check-then-fetch
sequence so that the second process finds and reuses a verified file instead
of downloading it again.

Usage:
    from sfdxprebuilt.core.locking import artifact_lock

    with artifact_lock(download_path, timeout=300):
        if not cached_copy_is_valid(download_path):
            fetch(download_path)
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)


def lock_path_for(artifact_path: Path) -> Path:
    """Lock file used for an artifact path."""
    artifact_path = Path(artifact_path)
    return artifact_path.with_name(f"{artifact_path.name}.lock")


@contextmanager
def artifact_lock(artifact_path: Path, timeout: int = 300):
    """
    Hold the lock for a download artifact.

    The lock is advisory. If it cannot be acquired within ``timeout`` seconds
    a warning is logged and the block runs unlocked; the checksum gate keeps
    the unlocked path safe, only slower.

    Args:
        artifact_path: Path of the artifact being downloaded
        timeout: Maximum wait time in seconds

    Yields:
        True if the lock is held, False if running unlocked
    """
    lock_path = lock_path_for(artifact_path)
    lock = FileLock(str(lock_path), timeout=timeout)

    try:
        lock.acquire()
    except LockTimeout:
        logger.warning(
            f"Could not acquire download lock {lock_path} after {timeout}s. "
            "Another installer may be downloading; continuing without lock."
        )
        yield False
        return

    logger.debug(f"Acquired download lock: {lock_path}")
    try:
        yield True
    finally:
        lock.release()
        logger.debug(f"Released download lock: {lock_path}")


__all__ = ["artifact_lock", "lock_path_for", "LockTimeout"]
