"""
Unit tests for version extraction, comparison and version checks.
"""

from unittest.mock import MagicMock

import pytest

from distrobuilder.backends.base import CommandResult
from distrobuilder.core.exceptions import CommandError, VersionExtractionError
from distrobuilder.toolchain.versions import (
    SEMVER,
    VersionCheck,
    exact_version,
    extract_version,
    minimum_version,
    parse_version,
    valid_version,
)


def executor_returning(stdout="", stderr="", exit_code=0):
    return MagicMock(
        side_effect=lambda inv, token: CommandResult(inv, exit_code, stdout, stderr)
    )


class TestExtractVersion:
    """Tests for extract_version."""

    def test_single_match(self):
        """Test the capture group is returned."""
        assert extract_version("cmake version 3.27.4\n", f"cmake version {SEMVER}") == "3.27.4"

    def test_prerelease_and_build(self):
        """Test full semantic versions are captured."""
        assert extract_version("v1.2.3-rc.1+build.5", SEMVER) == "1.2.3-rc.1+build.5"

    def test_no_match(self):
        """Test missing versions raise with the output attached."""
        with pytest.raises(VersionExtractionError) as exc_info:
            extract_version("no version here", SEMVER)

        assert exc_info.value.output == "no version here"

    def test_several_matches(self):
        """Test ambiguous output raises instead of guessing."""
        with pytest.raises(VersionExtractionError, match="found 2: 1.0.0, 2.0.0"):
            extract_version("tool 1.0.0 (library 2.0.0)", SEMVER)

    def test_pattern_without_group(self):
        """Test the whole match is used when the pattern has no group."""
        assert extract_version("version 5.4.1", r"\d+\.\d+\.\d+") == "5.4.1"


class TestComparators:
    """Tests for version comparators."""

    def test_minimum_is_inclusive(self):
        """Test the minimum itself is accepted."""
        comparator = minimum_version("3.20.0")

        assert comparator("3.20.0")
        assert comparator("3.27.4")
        assert not comparator("3.19.8")
        assert comparator.description == ">= 3.20.0"

    def test_exact(self):
        """Test exact comparison accepts only the same version."""
        comparator = exact_version("1.5.5")

        assert comparator("1.5.5")
        assert not comparator("1.5.5+git")
        assert not comparator("1.5.6")

    def test_exact_prerelease(self):
        """Test a pre-release does not equal its release."""
        assert not exact_version("1.0.0-alpha.beta")("1.0.0")
        assert exact_version("1.0.0-alpha.beta")("1.0.0-alpha.beta")

    def test_exact_build_metadata(self):
        """Test differing build metadata is a mismatch."""
        assert not exact_version("1.2.3+a")("1.2.3+b")

    def test_exact_rejects_invalid(self):
        """Test exact comparison of a non-semantic version raises."""
        with pytest.raises(VersionExtractionError):
            exact_version("1.0.0")("1.0")

    def test_numeric_ordering(self):
        """Test versions compare numerically, not lexically."""
        assert minimum_version("3.9.0")("3.10.0")

    def test_valid(self):
        """Test any semantic version is valid."""
        assert valid_version()("0.1.0")
        assert not valid_version()("1.2")

    def test_parse_unusual_prerelease(self):
        """Test pre-release tags PEP 440 cannot express compare on the core."""
        assert parse_version("1.2.3-x-y") == parse_version("1.2.3")

    def test_parse_invalid(self):
        """Test non-semantic versions raise VersionExtractionError."""
        with pytest.raises(VersionExtractionError):
            parse_version("1.2")


class TestVersionCheck:
    """Tests for VersionCheck.extract."""

    def test_reads_stdout(self):
        """Test the version is read from stdout by default."""
        executor = executor_returning(stdout="ninja 1.11.1\n")
        check = VersionCheck("ninja")

        assert check.extract(executor=executor) == "1.11.1"
        invocation = executor.call_args[0][0]
        assert invocation.argv == ["ninja", "--version"]

    def test_reads_stderr(self):
        """Test tools printing to stderr can be checked."""
        executor = executor_returning(stderr="Version 1.2.4\n", exit_code=1)
        check = VersionCheck(
            "libc.so",
            arguments=(),
            pattern=rf"(?m)^Version {SEMVER}$",
            stream="stderr",
            ignore_exit_code=True,
        )

        assert check.extract(executor=executor) == "1.2.4"

    def test_both_streams(self):
        """Test 'both' searches stdout and stderr."""
        executor = executor_returning(stdout="", stderr="tool 2.0.0")

        assert VersionCheck("tool", stream="both").extract(executor=executor) == "2.0.0"

    def test_nonzero_exit(self):
        """Test a failing command raises unless ignored."""
        executor = executor_returning(stdout="tool 2.0.0", exit_code=1)

        with pytest.raises(CommandError):
            VersionCheck("tool").extract(executor=executor)

    def test_stdin_passed(self):
        """Test stdin text reaches the invocation."""
        executor = executor_returning(stdout="6.1.0")

        VersionCheck("clang", arguments=("-E", "-"), stdin="X\n").extract(executor=executor)

        assert executor.call_args[0][0].stdin == "X\n"

    def test_invalid_stream(self):
        """Test unknown output streams are rejected."""
        with pytest.raises(ValueError):
            VersionCheck("tool", stream="stdlog")
