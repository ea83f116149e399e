"""
Unit tests for output directory locking.
"""

import pytest

from distrobuilder.core.exceptions import OutputLockedError
from distrobuilder.core.locking import lock_path_for, output_directory_lock


class TestOutputDirectoryLock:
    """Tests for output_directory_lock."""

    def test_lock_path_is_hidden_sibling(self, tmp_path):
        """Test the lock file sits next to the directory."""
        assert lock_path_for(tmp_path / "zstd") == tmp_path / ".zstd.lock"

    def test_acquire_and_release(self, tmp_path):
        """Test the lock can be taken again after release."""
        output = tmp_path / "out"

        with output_directory_lock(output) as lock_path:
            assert lock_path.exists()
            assert not (output / lock_path.name).exists()

        with output_directory_lock(output):
            pass

    def test_second_holder_fails(self, tmp_path):
        """Test a concurrent build of the same output directory is refused."""
        output = tmp_path / "out"

        with output_directory_lock(output):
            with pytest.raises(OutputLockedError, match="locked by another build"):
                with output_directory_lock(output):
                    pass
