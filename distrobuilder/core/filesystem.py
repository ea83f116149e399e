"""
File system utilities used by builders.

Provides executable lookup, safe deletion, directory clearing and
filtered tree copies. All operations raise FilesystemError on failure so
callers can handle them through the common exception hierarchy.
"""

import fnmatch
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional, Union

from distrobuilder.core.exceptions import FilesystemError

logger = logging.getLogger(__name__)


# ============================================================================
# Path Utilities
# ============================================================================


def find_executable(
    name: str, search_paths: Optional[List[Path]] = None
) -> Optional[Path]:
    """
    Find an executable in the system PATH or provided search paths.

    Args:
        name: Executable name (e.g., 'clang', 'cmake')
        search_paths: Optional list of directories to search

    Returns:
        Path to executable if found, None otherwise

    Example:
        >>> find_executable('make')
        PosixPath('/usr/bin/make')
    """
    if search_paths is None:
        path_env = os.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]

    for directory in search_paths:
        exe_path = Path(directory) / name
        if exe_path.is_file() and os.access(exe_path, os.X_OK):
            return exe_path

    return None


# ============================================================================
# Safe File Operations
# ============================================================================


def safe_rmtree(path: Union[str, Path]) -> None:
    """
    Remove a directory tree. Missing paths are ignored.

    Raises:
        FilesystemError: If the path is not a directory or deletion fails
    """
    path = Path(path).resolve()

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def clear_directory(path: Union[str, Path]) -> None:
    """
    Remove everything inside a directory, keeping the directory itself.

    Args:
        path: Directory to empty (created if missing)

    Raises:
        FilesystemError: If an entry cannot be removed
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)

    for entry in path.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as e:
            raise FilesystemError(f"Failed to remove '{entry}': {e}") from e


def copy_tree(
    source: Union[str, Path],
    destination: Union[str, Path],
    exclude: Iterable[str] = (),
) -> None:
    """
    Recursively copy a directory tree, preserving symlinks.

    Args:
        source: Source directory
        destination: Destination directory
        exclude: Glob patterns matched against top-level entry names

    Raises:
        FilesystemError: If the source is missing or the copy fails

    Example:
        >>> copy_tree('/src/xz', '/tmp/xz-autogen', exclude=['.git*'])
    """
    source = Path(source)
    destination = Path(destination)
    patterns = list(exclude)

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    destination.mkdir(parents=True, exist_ok=True)

    try:
        for entry in source.iterdir():
            if any(fnmatch.fnmatch(entry.name, pattern) for pattern in patterns):
                continue
            target = destination / entry.name
            if entry.is_symlink():
                os.symlink(os.readlink(entry), target)
            elif entry.is_dir():
                shutil.copytree(entry, target, symlinks=True)
            else:
                shutil.copy2(entry, target)
    except OSError as e:
        raise FilesystemError(f"Failed to copy '{source}' to '{destination}': {e}") from e


# ============================================================================
# Temporary Directory Management
# ============================================================================


@contextmanager
def temporary_directory(
    prefix: str = "distrobuilder_",
    cleanup: bool = True,
    parent: Optional[Union[str, Path]] = None,
):
    """
    Context manager for temporary directory with best-effort cleanup.

    A failure to remove the directory is logged instead of raised, so it
    never replaces an exception already propagating out of the block.

    Args:
        prefix: Prefix for temp directory name
        cleanup: If True, remove directory on exit
        parent: Directory to create it in (default: system temp directory)

    Yields:
        Path to temporary directory
    """
    temp_dir = Path(
        tempfile.mkdtemp(prefix=prefix, dir=str(parent) if parent is not None else None)
    )

    try:
        yield temp_dir
    finally:
        if cleanup:
            try:
                safe_rmtree(temp_dir)
            except FilesystemError as e:
                logger.warning(f"Failed to clean up {temp_dir}: {e}")


__all__ = [
    "find_executable",
    "safe_rmtree",
    "clear_directory",
    "copy_tree",
    "temporary_directory",
]
