"""
Host requirement checks.

Before any source is fetched, a builder confirms that the tools it will
spawn exist on the host (or in the toolchain directory) and that tools with
a minimum version report one that satisfies it.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from distrobuilder.backends.command import CommandRunner
from distrobuilder.backends.process import Executor, run
from distrobuilder.config.option_sets import RunnerOptions
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import (
    CommandError,
    RequirementMissingError,
    VersionExtractionError,
)
from distrobuilder.core.filesystem import find_executable
from distrobuilder.toolchain.toolchain import REQUIRED_TOOLS, Toolchain
from distrobuilder.toolchain.versions import VersionCheck

logger = logging.getLogger(__name__)


def check_commands(
    commands: Iterable[str], search_paths: Optional[List[Path]] = None
) -> None:
    """
    Ensure every command is an executable on the search path.

    Args:
        commands: Command names
        search_paths: Directories to search (default: $PATH)

    Raises:
        RequirementMissingError: Listing every missing command
    """
    missing = [cmd for cmd in commands if find_executable(cmd, search_paths) is None]
    if missing:
        where = (
            ", ".join(str(p) for p in search_paths) if search_paths is not None else "$PATH"
        )
        raise RequirementMissingError(
            f"Required command(s) not found in {where}: {', '.join(missing)}"
        )


def check_versions(
    checks: Sequence[VersionCheck],
    executor: Optional[Executor] = None,
    cancellation: Optional[CancellationToken] = None,
) -> None:
    """
    Run version checks against host tools.

    Raises:
        RequirementMissingError: If a tool cannot report a version or the
            reported version fails its comparator
    """
    for check in checks:
        try:
            version = check.extract(executor=executor, cancellation=cancellation)
        except (CommandError, VersionExtractionError) as e:
            raise RequirementMissingError(
                f"Could not determine version of {check.command}: {e}"
            ) from e

        try:
            accepted = check.comparator(version)
        except VersionExtractionError as e:
            raise RequirementMissingError(
                f"Cannot compare {check.command} version {version}: {e}"
            ) from e
        if not accepted:
            raise RequirementMissingError(
                f"{check.command} version {version} does not satisfy "
                f"{check.comparator.description}"
            )
        logger.info(f"✓ {check.command} {version} ({check.comparator.description})")


def probe_toolchain(
    toolchain: Toolchain,
    executor: Optional[Executor] = None,
    cancellation: Optional[CancellationToken] = None,
    runner_options: Sequence[Optional[RunnerOptions]] = (),
) -> str:
    """
    Confirm a toolchain is complete and responsive.

    Checks that clang, clang++ and ld.lld exist in the bin directory, then
    runs ``clang --version`` and ``clang -dumpmachine``.

    Args:
        toolchain: Toolchain to probe
        executor: Process executor
        cancellation: Cancellation token

    Returns:
        The compiler's default target as reported by -dumpmachine

    Raises:
        RequirementMissingError: If a tool is missing or does not respond
    """
    check_commands(REQUIRED_TOOLS, [toolchain.bin_directory])

    try:
        for probe in ("--version", "-dumpmachine"):
            result = run(
                CommandRunner(
                    toolchain.c_compiler, [probe], runner_options=runner_options
                ),
                executor=executor,
                cancellation=cancellation,
            )
    except CommandError as e:
        raise RequirementMissingError(
            f"Toolchain compiler {toolchain.c_compiler} does not respond: {e}"
        ) from e

    default_target = result.stdout.strip()
    logger.debug(
        f"Toolchain {toolchain.bin_directory} defaults to '{default_target}', "
        f"building for {toolchain.triplet}"
    )
    return default_target
