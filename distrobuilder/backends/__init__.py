"""
Build backend runners.

Each runner renders merged option sets into one external-tool invocation;
process.run() executes it with uniform output capture and failure handling.
"""

from .base import Invocation, CommandResult, Runner
from .process import execute, run
from .command import CommandRunner
from .cmake import CMakeRunner, read_cmake_cache, recommended_parallel_link_jobs
from .configure import ConfigureRunner
from .make import MakeRunner
from .meson import MesonRunner
from .ninja import NinjaRunner

__all__ = [
    "Invocation",
    "CommandResult",
    "Runner",
    "execute",
    "run",
    "CommandRunner",
    "CMakeRunner",
    "read_cmake_cache",
    "recommended_parallel_link_jobs",
    "ConfigureRunner",
    "MakeRunner",
    "MesonRunner",
    "NinjaRunner",
]
