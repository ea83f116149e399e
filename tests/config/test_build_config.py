"""
Unit tests for distrobuilder.yaml loading and validation.
"""

import os
from pathlib import Path

import pytest

from distrobuilder.config.options import BoolValue, SeparatorValue, StringValue
from distrobuilder.config.parser import (
    BuildConfig,
    PackageConfig,
    find_config,
    load_build_config,
    parse_build_config,
)
from distrobuilder.core.exceptions import ConfigurationError


def write_config(directory: Path, text: str) -> Path:
    path = directory / "distrobuilder.yaml"
    path.write_text(text)
    return path


class TestLoadBuildConfig:
    """Tests for load_build_config."""

    def test_full_file(self, temp_dir):
        """Test defaults and package settings are parsed."""
        path = write_config(
            temp_dir,
            """
defaults:
  toolchain_directory: /opt/cross
  target_triplet: aarch64-linux-musl
  root_fs_directory: rootfs
  output_directory: out
  timeout: 600
packages:
  zstd:
    git_ref: refs/tags/v1.5.5
    cmake_defines:
      ZSTD_LEGACY_SUPPORT: "OFF"
      BUILD_TESTING: false
    environment:
      EXTRA: [a, b]
  pcre2:
    configure_flags: [--disable-jit]
""",
        )

        config = load_build_config(path)

        assert config.path == path
        assert config.defaults.toolchain_directory == Path("/opt/cross")
        assert config.defaults.target_triplet == "aarch64-linux-musl"
        assert config.defaults.root_fs_directory == (temp_dir / "rootfs").resolve()
        assert config.defaults.timeout == 600.0

        zstd = config.package("zstd")
        assert zstd.git_ref == "refs/tags/v1.5.5"
        assert zstd.cmake_defines["ZSTD_LEGACY_SUPPORT"] == StringValue("OFF")
        assert zstd.cmake_defines["BUILD_TESTING"] == BoolValue(False)
        assert zstd.environment["EXTRA"] == SeparatorValue(("a", "b"))
        assert config.package("pcre2").configure_flags == ["--disable-jit"]

    def test_output_directory_per_package(self, temp_dir):
        """Test each package builds into its own output subdirectory."""
        path = write_config(temp_dir, "defaults:\n  output_directory: /srv/out\n")

        config = load_build_config(path)

        assert config.output_directory("lz4") == Path("/srv/out/lz4")

    def test_empty_file(self, temp_dir):
        """Test an empty file gives an empty configuration."""
        config = load_build_config(write_config(temp_dir, ""))

        assert config.packages == {}
        assert config.output_directory("zstd") is None

    def test_missing_file(self, temp_dir):
        """Test a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_build_config(temp_dir / "absent.yaml")

    def test_invalid_yaml(self, temp_dir):
        """Test YAML syntax errors raise ConfigurationError."""
        path = write_config(temp_dir, "defaults: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_build_config(path)


class TestValidation:
    """Tests for parse_build_config validation."""

    def test_unknown_top_level_key(self):
        """Test unknown top-level keys are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown key"):
            parse_build_config({"default": {}})

    def test_unknown_package_key(self):
        """Test unknown package keys name the package."""
        with pytest.raises(ConfigurationError, match="packages.zstd"):
            parse_build_config({"packages": {"zstd": {"gitref": "HEAD"}}})

    def test_not_a_mapping(self):
        """Test non-mapping documents are rejected."""
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            parse_build_config(["zstd"])

    @pytest.mark.parametrize("timeout", [0, -5, "long", True])
    def test_bad_timeout(self, timeout):
        """Test timeouts must be positive numbers."""
        with pytest.raises(ConfigurationError, match="timeout"):
            parse_build_config({"defaults": {"timeout": timeout}})

    def test_bad_option_value(self):
        """Test nested mappings are not valid option values."""
        with pytest.raises(ConfigurationError, match="cmake_defines.X"):
            parse_build_config({"packages": {"zstd": {"cmake_defines": {"X": {"a": 1}}}}})

    def test_bad_configure_flags(self):
        """Test configure flags must be a list of strings."""
        with pytest.raises(ConfigurationError, match="configure_flags"):
            parse_build_config({"packages": {"xz": {"configure_flags": "--disable-nls"}}})

    def test_non_string_ref(self):
        """Test git refs must be strings."""
        with pytest.raises(ConfigurationError, match="git_ref"):
            parse_build_config({"packages": {"xz": {"git_ref": 5}}})

    def test_relative_paths_use_base_directory(self, temp_dir):
        """Test relative paths resolve against the configuration directory."""
        config = parse_build_config(
            {"packages": {"xz": {"source_directory": "src/xz"}}}, base_directory=temp_dir
        )

        assert config.package("xz").source_directory == (temp_dir / "src" / "xz").resolve()


class TestPackageConfig:
    """Tests for PackageConfig helpers."""

    def test_unlisted_package(self):
        """Test unlisted packages get empty settings."""
        package = BuildConfig().package("lz4")

        assert package == PackageConfig(name="lz4")
        assert package.override_layer() is None

    def test_override_layer(self):
        """Test package option maps become an override layer."""
        package = PackageConfig(
            name="xz",
            configure_flags=["--disable-nls"],
            make_variables={"V": StringValue("1")},
        )

        layer = package.override_layer()

        assert layer.configure_options().flags == ["--disable-nls"]
        assert layer.make_options().variables == {"V": StringValue("1")}
        assert layer.cmake_options().defines == {}


class TestFindConfig:
    """Tests for find_config."""

    def test_explicit_missing(self, temp_dir):
        """Test a missing explicit path is an error."""
        with pytest.raises(ConfigurationError, match="not found"):
            find_config(temp_dir / "nope.yaml")

    def test_explicit_present(self, temp_dir):
        """Test an explicit path is returned as-is."""
        path = write_config(temp_dir, "")

        assert find_config(str(path)) == path

    def test_current_directory(self, temp_dir, monkeypatch):
        """Test distrobuilder.yaml in the working directory is found."""
        monkeypatch.chdir(temp_dir)
        assert find_config() is None

        write_config(temp_dir, "")

        assert find_config() == Path(os.getcwd()) / "distrobuilder.yaml"
