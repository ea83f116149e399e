"""
Generic command runner for tools without a dedicated backend (git, libtool,
autogen scripts, version probes).
"""

from pathlib import Path
from typing import List, Optional, Sequence

from distrobuilder.backends.base import Invocation, Runner
from distrobuilder.config.option_sets import RunnerOptions


class CommandRunner(Runner):
    """
    Run an arbitrary command.

    Empty arguments are dropped, so optional values can be passed inline.

    Example:
        >>> runner = CommandRunner("git", ["-C", "/src", "rev-parse", "HEAD"])
        >>> runner.arguments()
        ['-C', '/src', 'rev-parse', 'HEAD']
    """

    def __init__(
        self,
        command: str,
        arguments: Sequence[str] = (),
        working_directory: Optional[Path] = None,
        runner_options: Sequence[Optional[RunnerOptions]] = (),
        stdin: Optional[str] = None,
        name: Optional[str] = None,
    ):
        super().__init__(working_directory, runner_options)
        self._command = str(command)
        self._arguments = [str(a) for a in arguments if str(a) != ""]
        self.stdin = stdin
        self.name = name or Path(self._command).name

    @property
    def command(self) -> str:
        return self._command

    def arguments(self) -> List[str]:
        return list(self._arguments)

    def build_invocation(self) -> Invocation:
        invocation = super().build_invocation()
        invocation.stdin = self.stdin
        return invocation
