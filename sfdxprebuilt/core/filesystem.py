"""
File system utilities for sfdx-prebuilt.

This module provides the platform-aware file operations the installer needs:
- Temporary directory selection with a write-and-delete probe
- Archive extraction (tar.gz, tar.xz, tar.bz2, zip) with deferred links
- Safe file operations (atomic writes, guarded deletion, permission bits)
- Executable search path cleaning and lookup
"""

import logging
import os
import shutil
import stat
import sys
import tarfile
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from sfdxprebuilt.core.exceptions import (
    ArchiveExtractionError,
    InsecureArchiveError,
    SfdxPrebuiltError,
    TempDirectoryError,
    UnsupportedArchiveFormat,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

# Permissions for directories shared between users and invocations;
# applied explicitly because restrictive umasks would drop them.
SHARED_DIR_MODE = 0o777


class FilesystemError(SfdxPrebuiltError):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Temporary Directories
# ============================================================================


def open_permissions(path: Path) -> None:
    """Create ``path`` if needed and make it writable by all users."""
    path.mkdir(mode=SHARED_DIR_MODE, parents=True, exist_ok=True)
    os.chmod(path, SHARED_DIR_MODE)


def find_writable_temp_dir(
    candidates: Iterable[Optional[Union[str, Path]]], subdir: str = "sfdx"
) -> Path:
    """
    Return the first candidate that accepts a write-and-delete probe.

    Each candidate is extended with ``subdir``, created with open
    permissions, and probed by writing and removing a timestamped file.
    ``None`` candidates are skipped.

    Args:
        candidates: Directories to try, in order of preference
        subdir: Sub-directory created inside the chosen candidate

    Returns:
        Path to the writable directory

    Raises:
        TempDirectoryError: If no candidate is writable
    """
    now = int(time.time() * 1000)
    tried = []

    for candidate in candidates:
        if not candidate:
            continue

        candidate_path = Path(candidate).resolve() / subdir
        tried.append(candidate_path)
        try:
            open_permissions(candidate_path)
            probe = candidate_path / f"{now}.tmp"
            probe.write_text("test")
            probe.unlink()
            return candidate_path
        except OSError as e:
            logger.info(f"{candidate_path} is not writable: {e}")

    raise TempDirectoryError(tried)


def default_temp_candidates(override: Optional[Path] = None) -> List[Optional[Path]]:
    """Temp directory candidates: override, OS temp dir, ./tmp."""
    return [override, Path(tempfile.gettempdir()), Path.cwd() / "tmp"]


# ============================================================================
# Executable Search Path
# ============================================================================


def clean_path(path_value: str) -> str:
    """
    Remove launcher directories from a search path.

    Drops empty entries, entries containing ``node_modules`` and the literal
    ``./bin`` entry, so that a lookup does not find the launchers of the
    surrounding project.

    Example:
        >>> clean_path("/Work/bin:/Work/sfdx/node_modules/.bin:/usr/bin")
        '/Work/bin:/usr/bin'
        >>> clean_path("./bin")
        ''
    """
    kept = [
        entry
        for entry in path_value.split(os.pathsep)
        if entry and "node_modules" not in entry and entry != "./bin"
    ]
    return os.pathsep.join(kept)


def find_executable(name: str, search_path: Optional[str] = None) -> Optional[Path]:
    """
    Find an executable on a search path.

    Args:
        name: Executable name (e.g., 'sfdx')
        search_path: os.pathsep-separated directories (default: $PATH)

    Returns:
        Path to executable if found, None otherwise

    Example:
        >>> find_executable('sh')
        PosixPath('/bin/sh')
    """
    extensions = [""] if not IS_WINDOWS else ["", ".exe", ".bat", ".cmd"]

    if search_path is None:
        search_path = os.environ.get("PATH", "")

    for directory in search_path.split(os.pathsep):
        if not directory:
            continue
        for ext in extensions:
            exe_path = Path(directory) / f"{name}{ext}"
            if exe_path.is_file() and os.access(exe_path, os.X_OK):
                return exe_path

    return None


# ============================================================================
# Archive Extraction
# ============================================================================


@dataclass(frozen=True)
class DeferredLink:
    """
    A link entry diverted from bulk extraction.

    Attributes:
        path: Where the link has to appear
        link_source: Existing extracted file the link points to
    """

    path: Path
    link_source: Path


def _validate_archive_path(name: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / name).resolve()
    if not member_path.is_relative_to(destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{name}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def _deferred_link(
    destination: Path, name: str, linkname: str, hard: bool
) -> Optional[DeferredLink]:
    """Build the deferred link for an entry, or None if it points outside."""
    # Hard link names are archive-root relative, symlinks are relative to
    # the directory holding the link.
    if hard:
        source = destination / linkname
    else:
        source = (destination / name).parent / linkname

    if not source.resolve().is_relative_to(destination.resolve()):
        logger.warning(f"Ignoring link {name} -> {linkname}: target is outside archive")
        return None
    return DeferredLink(path=destination / name, link_source=source)


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
) -> List[DeferredLink]:
    """
    Extract an archive, deferring link entries.

    Regular files and directories are written immediately. Symbolic and hard
    link entries are not extracted; they are returned so the caller can
    materialize them once every regular file exists.

    Supported formats: .tar.gz/.tgz, .tar.xz, .tar.bz2/.tbz2, .zip

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to

    Returns:
        Link entries to materialize after extraction

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        InsecureArchiveError: If archive contains malicious paths
        ArchiveExtractionError: If extraction fails
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)
    archive_name = archive_path.name.lower()

    try:
        if archive_name.endswith(".zip"):
            return _extract_zip(archive_path, destination)
        elif archive_name.endswith((".tar.gz", ".tgz")):
            return _extract_tar(archive_path, destination, "r:gz")
        elif archive_name.endswith(".tar.xz"):
            return _extract_tar(archive_path, destination, "r:xz")
        elif archive_name.endswith((".tar.bz2", ".tbz2")):
            return _extract_tar(archive_path, destination, "r:bz2")
        raise UnsupportedArchiveFormat(
            f"Unsupported archive format: {archive_path.name}. "
            "Supported: .zip, .tar.gz, .tar.xz, .tar.bz2"
        )
    except (InsecureArchiveError, UnsupportedArchiveFormat):
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> List[DeferredLink]:
    """Extract a tar archive with specified compression."""
    links = []
    regular = []

    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()

        for member in members:
            _validate_archive_path(member.name, destination)
            if member.issym() or member.islnk():
                link = _deferred_link(
                    destination, member.name, member.linkname, member.islnk()
                )
                if link:
                    links.append(link)
            else:
                regular.append(member)

        if sys.version_info >= (3, 12):
            tar.extractall(destination, members=regular, filter="data")
        else:
            tar.extractall(destination, members=regular)

    return links


def _extract_zip(archive_path: Path, destination: Path) -> List[DeferredLink]:
    """Extract a ZIP archive, restoring Unix permission bits."""
    links = []

    with zipfile.ZipFile(archive_path, "r") as zf:
        infos = zf.infolist()

        for info in infos:
            _validate_archive_path(info.filename, destination)

        for info in infos:
            unix_mode = info.external_attr >> 16
            if stat.S_ISLNK(unix_mode):
                linkname = zf.read(info).decode("utf-8")
                link = _deferred_link(destination, info.filename, linkname, hard=False)
                if link:
                    links.append(link)
                continue

            extracted = Path(zf.extract(info, destination))
            if unix_mode and not info.is_dir():
                os.chmod(extracted, stat.S_IMODE(unix_mode))

    return links


def materialize_links(links: Iterable[DeferredLink]) -> int:
    """
    Create deferred links as hard links.

    A failed link is retried once after removing whatever occupies the link
    path; if that also fails the link is skipped with a warning.

    Args:
        links: Deferred link entries from extract_archive()

    Returns:
        Number of links created
    """
    created = 0
    for link in links:
        link.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.link(link.link_source, link.path)
            created += 1
            continue
        except OSError:
            pass

        try:
            link.path.unlink()
            os.link(link.link_source, link.path)
            created += 1
        except OSError as e:
            logger.warning(
                f"Ignoring link between {link.link_source} and {link.path} "
                f"because of exception: {e}"
            )
    return created


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the write fails, the original file (if any) remains unchanged.

    Example:
        >>> atomic_write('location.py', 'location = "sfdx/bin/sfdx"\\n')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree (or a single file) with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/sfdx/extract', require_prefix='/tmp/sfdx')
    """
    path = Path(path)

    if require_prefix is not None:
        prefix = Path(require_prefix).resolve()
        if not path.resolve().is_relative_to(prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return

    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        elif IS_WINDOWS:

            def handle_remove_readonly(func, failed_path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(failed_path, os.W_OK):
                    os.chmod(failed_path, stat.S_IWRITE)
                    func(failed_path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except OSError as e:
        raise FilesystemError(f"Failed to remove '{path}': {e}") from e


def ensure_mode_bits(path: Union[str, Path], bits: int) -> bool:
    """
    Add permission bits to a file, leaving it untouched if already set.

    Returns:
        True if the mode was changed
    """
    path = Path(path)
    current = stat.S_IMODE(path.stat().st_mode)
    wanted = current | bits
    if wanted == current:
        return False
    os.chmod(path, wanted)
    return True


__all__ = [
    "FilesystemError",
    "DeferredLink",
    "SHARED_DIR_MODE",
    "open_permissions",
    "find_writable_temp_dir",
    "default_temp_candidates",
    "clean_path",
    "find_executable",
    "extract_archive",
    "materialize_links",
    "atomic_write",
    "safe_rmtree",
    "ensure_mode_bits",
]
