"""YAML project configuration for distrobuilder.

This module parses and validates distrobuilder.yaml files, which provide
per-project defaults (toolchain, target, root filesystem, output location)
and per-package settings (git ref, source directory, option overrides).

Example:
    defaults:
      toolchain_directory: /opt/cross
      target_triplet: x86_64-pc-linux-musl
      root_fs_directory: /srv/rootfs
      output_directory: /srv/out
      timeout: 7200
    packages:
      zstd:
        git_ref: refs/tags/v1.5.5
        cmake_defines: {ZSTD_LEGACY_SUPPORT: "OFF"}
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from distrobuilder.config.layers import OverrideLayer
from distrobuilder.config.option_sets import (
    CMakeOptions,
    ConfigureOptions,
    MakeOptions,
    MesonOptions,
    RunnerOptions,
)
from distrobuilder.config.options import OptionMap, as_option
from distrobuilder.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "distrobuilder.yaml"

DEFAULT_KEYS = (
    "toolchain_directory",
    "target_triplet",
    "root_fs_directory",
    "output_directory",
    "timeout",
)
PACKAGE_KEYS = (
    "git_ref",
    "source_directory",
    "cmake_defines",
    "configure_flags",
    "configure_variables",
    "make_variables",
    "meson_options",
    "environment",
)
_SCALAR_TYPES = (str, int, float, bool)


@dataclass
class Defaults:
    """Settings applied to every package unless overridden."""

    toolchain_directory: Optional[Path] = None
    target_triplet: Optional[str] = None
    root_fs_directory: Optional[Path] = None
    output_directory: Optional[Path] = None
    timeout: Optional[float] = None


@dataclass
class PackageConfig:
    """Settings for a single package."""

    name: str
    git_ref: Optional[str] = None
    source_directory: Optional[Path] = None
    cmake_defines: OptionMap = field(default_factory=dict)
    configure_flags: List[str] = field(default_factory=list)
    configure_variables: OptionMap = field(default_factory=dict)
    make_variables: OptionMap = field(default_factory=dict)
    meson_options: OptionMap = field(default_factory=dict)
    environment: OptionMap = field(default_factory=dict)

    def override_layer(self) -> Optional[OverrideLayer]:
        """
        Build the caller override layer from this package's option maps.

        Returns:
            OverrideLayer, or None if the package sets no options
        """
        if not (
            self.cmake_defines
            or self.configure_flags
            or self.configure_variables
            or self.make_variables
            or self.meson_options
            or self.environment
        ):
            return None

        return OverrideLayer(
            runner=RunnerOptions(environment=dict(self.environment)),
            cmake=CMakeOptions(defines=dict(self.cmake_defines)),
            configure=ConfigureOptions(
                flags=list(self.configure_flags),
                variables=dict(self.configure_variables),
            ),
            make=MakeOptions(variables=dict(self.make_variables)),
            meson=MesonOptions(options=dict(self.meson_options)),
        )


@dataclass
class BuildConfig:
    """Complete project configuration."""

    defaults: Defaults = field(default_factory=Defaults)
    packages: Dict[str, PackageConfig] = field(default_factory=dict)
    path: Optional[Path] = None

    def package(self, name: str) -> PackageConfig:
        """Get a package's settings (empty settings if it is not listed)."""
        return self.packages.get(name) or PackageConfig(name=name)

    def output_directory(self, name: str) -> Optional[Path]:
        """Per-package output directory below the default output directory."""
        if self.defaults.output_directory is None:
            return None
        return self.defaults.output_directory / name


# ============================================================================
# Loading
# ============================================================================


def find_config(explicit: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Locate the project configuration file.

    Args:
        explicit: Path given on the command line (must exist)

    Returns:
        Path of the configuration file, or None if no file applies

    Raises:
        ConfigurationError: If an explicit path does not exist
    """
    if explicit is not None:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
        return path

    candidate = Path.cwd() / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_file() else None


def load_build_config(path: Union[str, Path]) -> BuildConfig:
    """
    Parse and validate a distrobuilder.yaml file.

    Relative paths in the file are resolved against the file's directory.

    Args:
        path: Configuration file

    Returns:
        Parsed configuration

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or
            contains unknown keys or values of the wrong type
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

    logger.debug(f"Loaded configuration from {path}")
    config = parse_build_config(data, base_directory=path.parent)
    config.path = path
    return config


def parse_build_config(
    data: Any, base_directory: Optional[Path] = None
) -> BuildConfig:
    """Validate already-loaded configuration data."""
    if data is None:
        return BuildConfig()
    _require_mapping(data, "configuration")
    _reject_unknown(data, ("defaults", "packages"), "configuration")

    base = Path(base_directory) if base_directory is not None else Path.cwd()
    defaults = _parse_defaults(data.get("defaults") or {}, base)

    packages_data = data.get("packages") or {}
    _require_mapping(packages_data, "packages")
    packages = {
        str(name): _parse_package(str(name), entry or {}, base)
        for name, entry in packages_data.items()
    }
    return BuildConfig(defaults=defaults, packages=packages)


def _parse_defaults(data: Any, base: Path) -> Defaults:
    _require_mapping(data, "defaults")
    _reject_unknown(data, DEFAULT_KEYS, "defaults")

    timeout = data.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError(
                f"defaults.timeout must be a positive number of seconds, got {timeout!r}"
            )

    return Defaults(
        toolchain_directory=_path(data, "toolchain_directory", base, "defaults"),
        target_triplet=_string(data, "target_triplet", "defaults"),
        root_fs_directory=_path(data, "root_fs_directory", base, "defaults"),
        output_directory=_path(data, "output_directory", base, "defaults"),
        timeout=float(timeout) if timeout is not None else None,
    )


def _parse_package(name: str, data: Any, base: Path) -> PackageConfig:
    section = f"packages.{name}"
    _require_mapping(data, section)
    _reject_unknown(data, PACKAGE_KEYS, section)

    flags = data.get("configure_flags") or []
    if not isinstance(flags, list) or not all(isinstance(f, str) for f in flags):
        raise ConfigurationError(f"{section}.configure_flags must be a list of strings")

    return PackageConfig(
        name=name,
        git_ref=_string(data, "git_ref", section),
        source_directory=_path(data, "source_directory", base, section),
        cmake_defines=_option_map(data, "cmake_defines", section),
        configure_flags=list(flags),
        configure_variables=_option_map(data, "configure_variables", section),
        make_variables=_option_map(data, "make_variables", section),
        meson_options=_option_map(data, "meson_options", section),
        environment=_option_map(data, "environment", section),
    )


# ============================================================================
# Validation helpers
# ============================================================================


def _require_mapping(value: Any, section: str) -> None:
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"{section} must be a mapping, got {type(value).__name__}"
        )


def _reject_unknown(data: Dict[str, Any], allowed, section: str) -> None:
    unknown = sorted(str(key) for key in data if key not in allowed)
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in {section}: {', '.join(unknown)} "
            f"(expected {', '.join(allowed)})"
        )


def _string(data: Dict[str, Any], key: str, section: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{section}.{key} must be a string, got {value!r}")
    return value


def _path(data: Dict[str, Any], key: str, base: Path, section: str) -> Optional[Path]:
    value = _string(data, key, section)
    if value is None:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def _option_map(data: Dict[str, Any], key: str, section: str) -> OptionMap:
    values = data.get(key) or {}
    if not isinstance(values, dict):
        raise ConfigurationError(f"{section}.{key} must be a mapping")

    options: OptionMap = {}
    for name, value in values.items():
        if isinstance(value, list):
            if not all(isinstance(v, _SCALAR_TYPES) for v in value):
                raise ConfigurationError(
                    f"{section}.{key}.{name} must be a scalar or a list of scalars"
                )
        elif not isinstance(value, _SCALAR_TYPES):
            raise ConfigurationError(
                f"{section}.{key}.{name} must be a scalar or a list of scalars"
            )
        options[str(name)] = as_option(value)
    return options
