"""
Autoconf-style configure script runner.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from distrobuilder.backends.base import Runner
from distrobuilder.config.option_sets import ConfigureOptions, RunnerOptions
from distrobuilder.config.options import StringValue
from distrobuilder.cross.triplet import Triplet


class ConfigureRunner(Runner):
    """
    Run a configure script.

    The command line is ``<script> --name=value... <flags>... NAME=value...``.
    When a host triplet is given, ``--host=`` and ``--target=`` are merged
    into the arguments like any other option, so an explicit conflicting
    ``--host`` raises UnmergeableOptionError.

    Args:
        build_directory: Directory configure runs in
        script_path: Path of the configure script
        options: Configure option sets, merged left to right
        host_triplet: Triplet the package will run on
        target_triplet: Triplet generated code targets (default: host)
        runner_options: Environment overlays
    """

    name = "configure"

    def __init__(
        self,
        build_directory: Path,
        script_path: Path,
        options: Sequence[Optional[ConfigureOptions]] = (),
        host_triplet: Optional[Triplet] = None,
        target_triplet: Optional[Triplet] = None,
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ):
        super().__init__(build_directory, runner_options)
        self.script_path = Path(script_path)

        cross_options = None
        if host_triplet is not None:
            cross_options = ConfigureOptions(
                arguments={
                    "--host": StringValue(str(host_triplet)),
                    "--target": StringValue(str(target_triplet or host_triplet)),
                }
            )
        self.options = ConfigureOptions.merge(*options, cross_options)

    @property
    def command(self) -> str:
        return str(self.script_path)

    def arguments(self) -> List[str]:
        args = [
            f"{name}={value.render()}" for name, value in self.options.arguments.items()
        ]
        args.extend(self.options.flags)
        args.extend(
            f"{name}={value.render()}" for name, value in self.options.variables.items()
        )
        return args
