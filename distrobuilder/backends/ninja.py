"""
Ninja runner.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from distrobuilder.backends.base import Runner
from distrobuilder.config.option_sets import RunnerOptions


class NinjaRunner(Runner):
    """Run ninja for the given targets inside a build directory."""

    name = "ninja"

    def __init__(
        self,
        build_directory: Path,
        targets: Sequence[str] = (),
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ):
        super().__init__(build_directory, runner_options)
        self.targets = list(targets)

    @property
    def command(self) -> str:
        return "ninja"

    def arguments(self) -> List[str]:
        return list(self.targets)
