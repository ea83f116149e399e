"""
Unit tests for filesystem helpers.
"""

import os

import pytest

from distrobuilder.core.exceptions import FilesystemError
from distrobuilder.core.filesystem import (
    clear_directory,
    copy_tree,
    find_executable,
    safe_rmtree,
    temporary_directory,
)


class TestPathUtilities:
    """Tests for path helpers."""

    def test_find_executable_in_search_paths(self, tmp_path):
        """Test executables are found only in the given directories."""
        tool = tmp_path / "clang"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)

        assert find_executable("clang", [tmp_path]) == tool
        assert find_executable("clang", [tmp_path / "missing"]) is None

    def test_find_executable_ignores_non_executable(self, tmp_path):
        """Test plain files are not treated as executables."""
        (tmp_path / "notes").write_text("text")

        assert find_executable("notes", [tmp_path]) is None


class TestDirectoryOperations:
    """Tests for directory helpers."""

    def test_clear_directory_keeps_directory(self, tmp_path):
        """Test contents are removed and the directory remains."""
        target = tmp_path / "out"
        (target / "usr" / "lib").mkdir(parents=True)
        (target / "file").write_text("x")
        os.symlink("file", target / "link")

        clear_directory(target)

        assert target.is_dir()
        assert list(target.iterdir()) == []

    def test_clear_directory_creates_missing(self, tmp_path):
        """Test a missing directory is created."""
        target = tmp_path / "new"
        clear_directory(target)

        assert target.is_dir()

    def test_copy_tree_excludes_git(self, tmp_path):
        """Test top-level .git* entries are skipped and symlinks kept."""
        source = tmp_path / "src"
        (source / ".git").mkdir(parents=True)
        (source / ".gitignore").write_text("*.o\n")
        (source / "src").mkdir()
        (source / "src" / "main.c").write_text("int main;\n")
        os.symlink("src/main.c", source / "link.c")

        destination = tmp_path / "copy"
        copy_tree(source, destination, exclude=[".git*"])

        assert (destination / "src" / "main.c").read_text() == "int main;\n"
        assert (destination / "link.c").is_symlink()
        assert not (destination / ".git").exists()
        assert not (destination / ".gitignore").exists()

    def test_copy_tree_missing_source(self, tmp_path):
        """Test copying a missing directory fails."""
        with pytest.raises(FilesystemError):
            copy_tree(tmp_path / "missing", tmp_path / "copy")

    def test_safe_rmtree(self, tmp_path):
        """Test recursive removal."""
        target = tmp_path / "tree"
        (target / "a").mkdir(parents=True)

        safe_rmtree(target)

        assert not target.exists()


class TestTemporaryDirectory:
    """Tests for temporary_directory."""

    def test_removed_after_use(self):
        """Test the directory is removed on exit."""
        with temporary_directory() as path:
            assert path.is_dir()
        assert not path.exists()

    def test_created_under_parent(self, tmp_path):
        """Test parent places the directory."""
        with temporary_directory(prefix="build-", parent=tmp_path) as path:
            assert path.parent == tmp_path
            assert path.name.startswith("build-")

    def test_keep_when_cleanup_disabled(self):
        """Test cleanup=False keeps the directory."""
        with temporary_directory(cleanup=False) as path:
            pass
        assert path.exists()
        safe_rmtree(path)
