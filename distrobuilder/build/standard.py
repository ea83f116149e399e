"""
Single-phase builders and backend helpers.

Most packages configure once and build once. StandardBuilder wraps
configure()/compile() into a single BuildPhase and provides helpers that
compose the builder's configuration layers for each backend, so recipes
only state their package-specific options.
"""

import logging
from abc import abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from distrobuilder.backends import (
    CMakeRunner,
    CommandResult,
    CommandRunner,
    ConfigureRunner,
    MakeRunner,
    MesonRunner,
    NinjaRunner,
)
from distrobuilder.build.builder import Builder, BuildPhase
from distrobuilder.build.context import Capability
from distrobuilder.config.layers import compose
from distrobuilder.config.option_sets import (
    CMakeOptions,
    ConfigureOptions,
    MakeOptions,
    MesonOptions,
    RunnerOptions,
)
from distrobuilder.config.options import StringValue
from distrobuilder.core.filesystem import copy_tree

logger = logging.getLogger(__name__)


class StandardBuilder(Builder):
    """
    Builder with exactly one configure + build phase.

    Subclasses set ``backend`` and ``binaries`` and implement configure()
    and compile(). Standard recipes cross-compile with the supplied
    toolchain against the target root filesystem.
    """

    capabilities = frozenset(
        {
            Capability.SOURCE,
            Capability.FILESYSTEM_OUTPUT,
            Capability.GIT_REF,
            Capability.TOOLCHAIN,
            Capability.ROOT_FS,
        }
    )
    backend: str = "command"
    # ELF files, relative to the output directory, checked after the build
    binaries: Sequence[str] = ()

    def phases(self) -> List[BuildPhase]:
        return [BuildPhase("build", self.backend, self.configure, self.compile)]

    def output_binaries(self) -> List[str]:
        return list(self.binaries)

    @abstractmethod
    def configure(self, build_directory: Path) -> None:
        pass

    @abstractmethod
    def compile(self, build_directory: Path) -> None:
        pass

    # ========================================================================
    # Option Composition
    # ========================================================================

    def runner_options(self, *extra: Optional[RunnerOptions]) -> RunnerOptions:
        """Environment for every process this builder starts."""
        return compose(
            self.layers(), RunnerOptions, *extra, overrides=self.override_layers()
        )

    # ========================================================================
    # Backend Helpers
    # ========================================================================

    def cmake_configure(
        self,
        build_directory: Path,
        options: Optional[CMakeOptions] = None,
        source_path: Optional[Path] = None,
        cache_scripts: Sequence[Path] = (),
    ) -> CommandResult:
        """
        Configure the source with CMake and the Ninja generator.

        Args:
            build_directory: CMake binary directory
            options: Package CMake options
            source_path: Project directory (default: the source checkout)
            cache_scripts: Initial cache scripts
        """
        merged = compose(
            self.layers(), CMakeOptions, options, overrides=self.override_layers()
        )
        return self.run_runner(
            CMakeRunner(
                build_directory,
                source_path or self.source_directory,
                options=[merged],
                generator="Ninja",
                cache_scripts=cache_scripts,
                runner_options=[self.runner_options()],
            )
        )

    def gnu_configure(
        self,
        build_directory: Path,
        options: Optional[ConfigureOptions] = None,
        source_path: Optional[Path] = None,
    ) -> CommandResult:
        """
        Run an autoconf configure script out of tree.

        ``--srcdir`` points at the source and ``--host``/``--target`` at the
        target triplet.

        Args:
            build_directory: Directory configure runs in
            options: Package configure options
            source_path: Directory holding the configure script (default:
                the source checkout)
        """
        source_path = Path(source_path or self.source_directory)
        srcdir = ConfigureOptions(arguments={"--srcdir": StringValue(str(source_path))})
        merged = compose(
            self.layers(),
            ConfigureOptions,
            srcdir,
            options,
            overrides=self.override_layers(),
        )
        return self.run_runner(
            ConfigureRunner(
                build_directory,
                source_path / "configure",
                options=[merged],
                host_triplet=self.triplet,
                runner_options=[self.runner_options()],
            )
        )

    def autogen_configure(
        self,
        build_directory: Path,
        options: Optional[ConfigureOptions] = None,
        script: str = "autogen.sh",
    ) -> CommandResult:
        """
        Generate a configure script, then run it.

        The generator writes into the tree it runs in, so the source is
        first copied (without git metadata) into the scratch directory. The
        copy is made once and shared by every phase of the build.

        Args:
            build_directory: Directory configure runs in
            options: Package configure options
            script: Generator script in the source root (autogen.sh, bootstrap)
        """
        generated = self.generated_source_directory()
        if not (generated / "configure").exists():
            self.run_command(generated / script, working_directory=generated)
        return self.gnu_configure(build_directory, options, source_path=generated)

    def generated_source_directory(self) -> Path:
        generated = self.scratch_directory / "source"
        if not generated.exists():
            logger.debug(f"[{self.name}] Copying source into {generated}")
            copy_tree(self.source_directory, generated, exclude=[".git*"])
        return generated

    def meson_setup(
        self, build_directory: Path, options: Optional[MesonOptions] = None
    ) -> CommandResult:
        """Set up a Meson build directory with generated machine files."""
        merged = compose(
            self.layers(), MesonOptions, options, overrides=self.override_layers()
        )
        return self.run_runner(
            MesonRunner(
                build_directory,
                self.source_directory,
                options=[merged],
                runner_options=[self.runner_options()],
            )
        )

    def ninja_build(
        self, build_directory: Path, targets: Sequence[str] = ("install",)
    ) -> CommandResult:
        return self.run_runner(
            NinjaRunner(
                build_directory, targets, runner_options=[self.runner_options()]
            )
        )

    def make_build(
        self,
        build_directory: Path,
        targets: Sequence[str] = ("all", "install"),
        options: Optional[MakeOptions] = None,
        directory: Optional[Path] = None,
    ) -> List[CommandResult]:
        """
        Run make once per target, in order.

        Args:
            build_directory: Directory make starts from
            targets: Targets, each run to completion before the next
            options: Package make variables
            directory: Directory passed to -C (default: build_directory)
        """
        merged = compose(
            self.layers(), MakeOptions, options, overrides=self.override_layers()
        )
        results = []
        for target in targets:
            results.append(
                self.run_runner(
                    MakeRunner(
                        build_directory,
                        directory=directory or build_directory,
                        targets=[target],
                        options=[merged],
                        runner_options=[self.runner_options()],
                    )
                )
            )
        return results

    def run_libtool_finish(self) -> CommandResult:
        """Run ``libtool --finish`` on the staged library directory."""
        return self.run_command(
            "libtool", ["--finish", self.output_directory / "usr" / "lib"]
        )

    def run_command(
        self,
        command,
        arguments: Sequence = (),
        working_directory: Optional[Path] = None,
        stdin: Optional[str] = None,
    ) -> CommandResult:
        return self.run_runner(
            CommandRunner(
                command,
                arguments,
                working_directory=working_directory,
                runner_options=[self.runner_options()],
                stdin=stdin,
            )
        )
