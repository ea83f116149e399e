"""
Unit tests for per-backend option sets.
"""

import pytest

from distrobuilder.config.option_sets import (
    CMakeOptions,
    ConfigureOptions,
    MakeOptions,
    MesonOptions,
    RunnerOptions,
)
from distrobuilder.config.options import ON, StringValue, separated
from distrobuilder.core.exceptions import UnmergeableOptionError


class TestOptionSetMerge:
    """Tests for OptionSet.merge."""

    def test_merge_skips_none(self):
        """Test absent option sets are ignored."""
        merged = RunnerOptions.merge(None, RunnerOptions({"A": StringValue("1")}), None)

        assert merged.environment == {"A": StringValue("1")}

    def test_merge_nothing(self):
        """Test merging no sets gives an empty set."""
        assert CMakeOptions.merge() == CMakeOptions()

    def test_cmake_undefines_union(self):
        """Test undefines are unioned in order."""
        merged = CMakeOptions.merge(
            CMakeOptions(undefines=["A", "B"]), CMakeOptions(undefines=["B", "C"])
        )

        assert merged.undefines == ["A", "B", "C"]

    def test_configure_flags_union(self):
        """Test configure flags are unioned in order."""
        merged = ConfigureOptions.merge(
            ConfigureOptions(flags=["--disable-static"]),
            ConfigureOptions(flags=["--disable-nls", "--disable-static"]),
        )

        assert merged.flags == ["--disable-static", "--disable-nls"]

    def test_configure_variable_conflict(self):
        """Test conflicting configure variables raise."""
        with pytest.raises(UnmergeableOptionError):
            ConfigureOptions.merge(
                ConfigureOptions(variables={"CC": StringValue("clang")}),
                ConfigureOptions(variables={"CC": StringValue("cc")}),
            )

    def test_make_variables(self):
        """Test make variables merge like any option map."""
        merged = MakeOptions.merge(
            MakeOptions({"DESTDIR": StringValue("/out")}), MakeOptions({"V": ON})
        )

        assert list(merged.variables) == ["DESTDIR", "V"]

    def test_meson_machine_files(self):
        """Test cross file sections merge per section."""
        merged = MesonOptions.merge(
            MesonOptions(cross_file={"binaries": {"c": separated("clang")}}),
            MesonOptions(cross_file={"properties": {"sys_root": StringValue("/r")}}),
        )

        assert set(merged.cross_file) == {"binaries", "properties"}
