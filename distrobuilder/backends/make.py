"""
Make runner.
"""

import os
from pathlib import Path
from typing import List, Optional, Sequence

from distrobuilder.backends.base import Runner
from distrobuilder.config.option_sets import MakeOptions, RunnerOptions


class MakeRunner(Runner):
    """
    Run make for the given targets.

    Renders ``-C <directory> <targets>... NAME=value... --no-print-directory
    -j<jobs>``.

    Args:
        working_directory: Directory make is started from
        directory: Directory passed to -C (default: ".")
        targets: Make targets, in order
        options: Make option sets, merged left to right
        jobs: Parallel jobs (default: CPU count)
        runner_options: Environment overlays
    """

    name = "make"

    def __init__(
        self,
        working_directory: Path,
        directory: Optional[Path] = None,
        targets: Sequence[str] = (),
        options: Sequence[Optional[MakeOptions]] = (),
        jobs: Optional[int] = None,
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ):
        super().__init__(working_directory, runner_options)
        self.directory = directory
        self.targets = list(targets)
        self.options = MakeOptions.merge(*options)
        self.jobs = jobs or os.cpu_count() or 1

    @property
    def command(self) -> str:
        return "make"

    def arguments(self) -> List[str]:
        args = ["-C", str(self.directory) if self.directory else "."]
        args.extend(self.targets)
        args.extend(
            f"{name}={value.render()}" for name, value in self.options.variables.items()
        )
        args.extend(["--no-print-directory", f"-j{self.jobs}"])
        return args
