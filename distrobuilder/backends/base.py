"""
Base classes for build backend runners.

A runner turns rendered option sets into one Invocation: an executable,
its arguments, a working directory and an environment overlay. Runners may
prepare files before the invocation (setup) and remove them afterwards
(cleanup); the process module drives that lifecycle.
"""

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from distrobuilder.config.option_sets import RunnerOptions
from distrobuilder.config.options import render_option_map


@dataclass
class Invocation:
    """
    A fully rendered external command.

    Attributes:
        command: Executable name or path
        arguments: Arguments following the executable
        working_directory: Directory the command runs in (None: current)
        environment: Variables overlaid on the inherited environment
        stdin: Text written to the command's standard input
    """

    command: str
    arguments: List[str] = field(default_factory=list)
    working_directory: Optional[Path] = None
    environment: Dict[str, str] = field(default_factory=dict)
    stdin: Optional[str] = None

    @property
    def argv(self) -> List[str]:
        return [self.command, *self.arguments]

    def pretty(self) -> str:
        """Shell-quoted command line for logs and error messages."""
        return shlex.join(self.argv)


@dataclass
class CommandResult:
    """Outcome of an executed Invocation."""

    invocation: Invocation
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class Runner(ABC):
    """
    Abstract base class for backend runners.

    Args:
        working_directory: Directory the command runs in
        runner_options: Environment overlays, merged left to right
    """

    name = "command"

    def __init__(
        self,
        working_directory: Optional[Path] = None,
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ):
        self.working_directory = (
            Path(working_directory) if working_directory is not None else None
        )
        self.runner_options = RunnerOptions.merge(*runner_options)

    def setup(self) -> None:
        """Prepare anything the invocation needs (files, directories)."""
        pass

    def cleanup(self) -> None:
        """Remove whatever setup created."""
        pass

    def environment(self) -> Dict[str, str]:
        return render_option_map(self.runner_options.environment)

    @abstractmethod
    def arguments(self) -> List[str]:
        """Arguments following the executable."""
        pass

    @property
    @abstractmethod
    def command(self) -> str:
        """Executable to run."""
        pass

    def build_invocation(self) -> Invocation:
        return Invocation(
            command=self.command,
            arguments=self.arguments(),
            working_directory=self.working_directory,
            environment=self.environment(),
        )
