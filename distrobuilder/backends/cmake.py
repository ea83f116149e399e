"""
CMake runner and CMake helpers.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from distrobuilder.backends.base import Runner
from distrobuilder.config.option_sets import CMakeOptions, RunnerOptions

logger = logging.getLogger(__name__)

# Memory budgeted for each concurrent link job when linking large projects
LINK_JOB_MEMORY_BYTES = 15 * 1024**3

MEMINFO_PATH = Path("/proc/meminfo")


class CMakeRunner(Runner):
    """
    Configure a project with CMake.

    Renders ``-G <generator>``, ``-U<name>`` for each undefine,
    ``-D<name>=<value>`` for each define, ``-C <cache>`` for each initial
    cache script and finally the source path.

    Args:
        build_directory: Directory cmake runs in (the binary directory)
        source_path: Project source directory
        options: CMake option sets, merged left to right
        generator: CMake generator name, None for CMake's default
        cache_scripts: Initial cache scripts passed with -C
        runner_options: Environment overlays
    """

    name = "cmake"

    def __init__(
        self,
        build_directory: Path,
        source_path: Optional[Path] = None,
        options: Sequence[Optional[CMakeOptions]] = (),
        generator: Optional[str] = "Ninja",
        cache_scripts: Sequence[Path] = (),
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ):
        super().__init__(build_directory, runner_options)
        self.source_path = source_path
        self.options = CMakeOptions.merge(*options)
        self.generator = generator
        self.cache_scripts = list(cache_scripts)

    @property
    def command(self) -> str:
        return "cmake"

    def arguments(self) -> List[str]:
        args: List[str] = []
        if self.generator:
            args.extend(["-G", self.generator])
        args.extend(f"-U{name}" for name in self.options.undefines)
        args.extend(
            f"-D{name}={value.render()}" for name, value in self.options.defines.items()
        )
        for script in self.cache_scripts:
            args.extend(["-C", str(script)])
        args.append(str(self.source_path) if self.source_path else ".")
        return args


def read_cmake_cache(build_directory: Path) -> Dict[str, str]:
    """
    Read the variables stored in a CMakeCache.txt.

    Lines have the form ``NAME:TYPE=value``; comments (``//`` and ``#``)
    and blank lines are skipped.

    Args:
        build_directory: CMake binary directory

    Returns:
        Mapping of variable name to value

    Example:
        >>> read_cmake_cache(Path("build"))["CMAKE_PROJECT_VERSION_MAJOR"]
        '16'
    """
    variables: Dict[str, str] = {}
    cache_file = Path(build_directory) / "CMakeCache.txt"

    with open(cache_file, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("//") or line.startswith("#"):
                continue
            name_and_type, sep, value = line.partition("=")
            if not sep:
                continue
            name = name_and_type.split(":", 1)[0]
            variables[name] = value

    return variables


def available_memory() -> int:
    """
    Available system memory in bytes.

    Reads MemAvailable from /proc/meminfo and falls back to the count of
    available physical pages.
    """
    try:
        with open(MEMINFO_PATH, "r") as f:
            for line in f:
                if line.startswith("MemAvailable:"):
                    return int(line.split()[1]) * 1024
    except (OSError, ValueError, IndexError):
        logger.debug(f"Could not read {MEMINFO_PATH}, using sysconf")

    try:
        return os.sysconf("SC_AVPHYS_PAGES") * os.sysconf("SC_PAGE_SIZE")
    except (ValueError, OSError):
        return 0


def recommended_parallel_link_jobs(memory_bytes: Optional[int] = None) -> int:
    """
    Number of concurrent link jobs that fit in available memory.

    Args:
        memory_bytes: Available memory (default: detected)

    Returns:
        Link job count, at least 1
    """
    if memory_bytes is None:
        memory_bytes = available_memory()
    jobs = max(1, memory_bytes // LINK_JOB_MEMORY_BYTES)
    logger.debug(f"Using {jobs} parallel link job(s) for {memory_bytes} bytes of memory")
    return jobs
