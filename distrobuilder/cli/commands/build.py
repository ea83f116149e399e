"""
Build command implementation.

Resolves every build input from the command line, the project
configuration and built-in defaults (in that order of precedence), then
runs the recipe's Builder through host checks, build and verification.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from distrobuilder.build.context import BuildContext, Capability
from distrobuilder.config.parser import BuildConfig, find_config, load_build_config
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import ConfigurationError
from distrobuilder.cross.triplet import Triplet, default_target_triplet
from distrobuilder.toolchain.toolchain import Toolchain

logger = logging.getLogger(__name__)


def run(args, registry) -> int:
    """
    Run the build command.

    Args:
        args: Parsed command-line arguments
        registry: Recipe registry

    Returns:
        Exit code (0 for success)

    Raises:
        DistroBuilderError: If any step of the build fails
    """
    entry = registry.get(args.package)
    config = load_project_config(getattr(args, "config", None))

    context = build_context(args, entry.name, entry.capabilities, config)
    builder = entry.factory(context)

    start_time = time.monotonic()
    try:
        builder.execute(
            check_host_requirements_only=args.check_host_requirements_only,
            skip_verification=args.skip_verification,
        )
    finally:
        logger.info(
            f"{entry.name}: {builder.state.value} after "
            f"{time.monotonic() - start_time:.1f}s"
        )

    if builder.output_directory is not None:
        print(builder.output_directory)
    return 0


def load_project_config(path: Optional[Path]) -> BuildConfig:
    """Load the project configuration, or an empty one if there is none."""
    config_path = find_config(path)
    if config_path is None:
        logger.debug("No configuration file found, using defaults")
        return BuildConfig()
    return load_build_config(config_path)


def build_context(args, package: str, capabilities, config: BuildConfig) -> BuildContext:
    """
    Merge command line flags, package settings and defaults into a BuildContext.

    Args:
        args: Parsed command-line arguments
        package: Package name
        capabilities: Capabilities of the package's recipe
        config: Project configuration

    Returns:
        BuildContext for the package

    Raises:
        ConfigurationError: If a configured value is invalid
    """
    package_config = config.package(package)
    defaults = config.defaults

    def flag(name):
        return getattr(args, name, None)

    context = BuildContext(overrides=package_config.override_layer())

    if Capability.SOURCE in capabilities:
        context.source_directory = (
            flag("source_directory_path") or package_config.source_directory
        )
    if Capability.FILESYSTEM_OUTPUT in capabilities:
        context.output_directory = flag(
            "output_directory_path"
        ) or config.output_directory(package)
    if Capability.GIT_REF in capabilities:
        context.git_ref = flag("git_ref") or package_config.git_ref

    needs_triplet = (
        Capability.TOOLCHAIN in capabilities or Capability.TARGET_TRIPLET in capabilities
    )
    triplet = _triplet(flag("target_triplet"), defaults.target_triplet) if needs_triplet else None

    if Capability.TARGET_TRIPLET in capabilities:
        context.target_triplet = triplet
    if Capability.TOOLCHAIN in capabilities:
        toolchain_directory = (
            flag("toolchain_directory_path") or defaults.toolchain_directory
        )
        if toolchain_directory is not None:
            _require_directory(toolchain_directory, "Toolchain directory")
            context.toolchain = Toolchain.from_directory(toolchain_directory, triplet)
    if Capability.ROOT_FS in capabilities:
        context.root_fs_directory = (
            flag("root_fs_directory_path") or defaults.root_fs_directory
        )

    timeout = flag("timeout") or defaults.timeout
    context.cancellation = CancellationToken(timeout=timeout)
    if timeout:
        logger.debug(f"Build deadline: {timeout:.0f}s")

    return context


def _triplet(flag_value: Optional[Triplet], configured: Optional[str]) -> Triplet:
    if flag_value is not None:
        return flag_value
    if configured is not None:
        return Triplet.parse(configured)
    return default_target_triplet()


def _require_directory(path: Path, description: str) -> None:
    if not Path(path).is_dir():
        raise ConfigurationError(f"{description} does not exist: {path}")
