"""
Tests for build context resolution in the build command.
"""

import argparse
from pathlib import Path

import pytest

from distrobuilder.build.context import Capability
from distrobuilder.cli.commands.build import build_context, load_project_config
from distrobuilder.config.parser import BuildConfig, Defaults, PackageConfig
from distrobuilder.core.exceptions import ConfigurationError
from distrobuilder.cross.triplet import Triplet

STANDARD = frozenset(
    {
        Capability.SOURCE,
        Capability.FILESYSTEM_OUTPUT,
        Capability.GIT_REF,
        Capability.TOOLCHAIN,
        Capability.ROOT_FS,
    }
)


def make_args(**kwargs):
    """Namespace with every build flag unset."""
    defaults = {
        "source_directory_path": None,
        "output_directory_path": None,
        "git_ref": None,
        "toolchain_directory_path": None,
        "target_triplet": None,
        "root_fs_directory_path": None,
        "timeout": None,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


@pytest.fixture
def project_config(temp_dir, mock_llvm_toolchain):
    """Configuration with defaults and settings for zstd."""
    rootfs = temp_dir / "rootfs"
    rootfs.mkdir()
    return BuildConfig(
        defaults=Defaults(
            toolchain_directory=mock_llvm_toolchain,
            target_triplet="aarch64-linux-musl",
            root_fs_directory=rootfs,
            output_directory=temp_dir / "out",
            timeout=600.0,
        ),
        packages={
            "zstd": PackageConfig(
                name="zstd",
                git_ref="refs/tags/v1.5.5",
                source_directory=temp_dir / "zstd-src",
                configure_flags=["--disable-nls"],
            )
        },
    )


class TestBuildContext:
    """Tests for build_context precedence."""

    def test_configuration_values(self, project_config, temp_dir, mock_llvm_toolchain):
        """Test package settings and defaults fill unset flags."""
        context = build_context(make_args(), "zstd", STANDARD, project_config)

        assert context.source_directory == temp_dir / "zstd-src"
        assert context.output_directory == temp_dir / "out" / "zstd"
        assert context.git_ref == "refs/tags/v1.5.5"
        assert context.toolchain.bin_directory == Path(mock_llvm_toolchain).resolve()
        assert str(context.toolchain.triplet) == "aarch64-linux-musl"
        assert context.root_fs_directory == temp_dir / "rootfs"
        assert context.overrides is not None
        assert context.cancellation.deadline is not None

    def test_flags_win(self, project_config, temp_dir):
        """Test command line flags take precedence over the configuration."""
        args = make_args(
            source_directory_path=temp_dir / "other-src",
            output_directory_path=temp_dir / "other-out",
            git_ref="HEAD",
            target_triplet=Triplet.parse("x86_64-pc-linux-musl"),
        )

        context = build_context(args, "zstd", STANDARD, project_config)

        assert context.source_directory == temp_dir / "other-src"
        assert context.output_directory == temp_dir / "other-out"
        assert context.git_ref == "HEAD"
        assert str(context.toolchain.triplet) == "x86_64-pc-linux-musl"

    def test_built_in_defaults(self):
        """Test an empty configuration leaves inputs to the recipe defaults."""
        context = build_context(make_args(), "zstd", STANDARD, BuildConfig())

        assert context.source_directory is None
        assert context.output_directory is None
        assert context.git_ref is None
        assert context.toolchain is None
        assert context.overrides is None
        assert context.cancellation.deadline is None

    def test_default_triplet(self, monkeypatch):
        """Test the target defaults to a musl triplet for the host."""
        monkeypatch.setattr("distrobuilder.cross.triplet.platform.machine", lambda: "aarch64")
        capabilities = frozenset({Capability.TARGET_TRIPLET})

        context = build_context(make_args(), "cross-llvm", capabilities, BuildConfig())

        assert str(context.target_triplet) == "aarch64-pc-linux-musl"

    def test_capabilities_limit_inputs(self, project_config):
        """Test inputs outside the recipe's capabilities are not set."""
        capabilities = frozenset({Capability.SOURCE, Capability.FILESYSTEM_OUTPUT})

        context = build_context(make_args(), "zstd", capabilities, project_config)

        assert context.toolchain is None
        assert context.root_fs_directory is None
        assert context.git_ref is None

    def test_missing_configured_toolchain(self, temp_dir):
        """Test a configured toolchain directory must exist."""
        config = BuildConfig(defaults=Defaults(toolchain_directory=temp_dir / "missing"))

        with pytest.raises(ConfigurationError, match="Toolchain directory"):
            build_context(make_args(), "zstd", STANDARD, config)


class TestLoadProjectConfig:
    """Tests for load_project_config."""

    def test_no_file(self, monkeypatch, temp_dir):
        """Test an empty configuration is used when no file exists."""
        monkeypatch.chdir(temp_dir)

        config = load_project_config(None)

        assert config.packages == {}

    def test_file_in_working_directory(self, monkeypatch, temp_dir):
        """Test ./distrobuilder.yaml is picked up."""
        monkeypatch.chdir(temp_dir)
        Path("distrobuilder.yaml").write_text("packages:\n  xz:\n    git_ref: HEAD\n")

        config = load_project_config(None)

        assert config.package("xz").git_ref == "HEAD"
