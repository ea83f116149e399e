"""
Linux kernel UAPI headers.

Only the sanitized userspace headers are installed; no kernel is compiled,
so no cross toolchain or root filesystem is needed.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.backends import MakeRunner
from distrobuilder.build.builder import Builder, BuildPhase
from distrobuilder.config.option_sets import MakeOptions
from distrobuilder.config.options import StringValue
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import LINUX
from distrobuilder.toolchain.versions import SEMVER, VersionCheck, exact_version

# Expands the version macros from linux/version.h to "major.minor.patch"
VERSION_MACRO_PROGRAM = "\n".join(
    [
        "#define VERSION(major,minor,patch) VERSION_(major,minor,patch)",
        "#define VERSION_(major,minor,patch) major ## . ## minor ## . ## patch",
        "VERSION(LINUX_VERSION_MAJOR, LINUX_VERSION_PATCHLEVEL, LINUX_VERSION_SUBLEVEL)",
    ]
)


class LinuxHeadersBuilder(Builder):
    name = "linux-headers"
    description = "Linux kernel userspace API headers"
    # clang is only used to preprocess the installed version header
    host_commands = ("git", "make", "clang")

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return LINUX.source(path, ref)

    def phases(self):
        return [BuildPhase("headers", "make", self._clean, self._install)]

    @property
    def header_directory(self) -> Path:
        return self.output_directory / "usr"

    def _make(self, build_directory: Path, target: str):
        runner = MakeRunner(
            build_directory,
            directory=self.source_directory,
            targets=[target],
            options=[
                MakeOptions(
                    variables={"INSTALL_HDR_PATH": StringValue(str(self.header_directory))}
                )
            ],
        )
        return self.run_runner(runner)

    def _clean(self, build_directory: Path) -> None:
        self._make(build_directory, "mrproper")

    def _install(self, build_directory: Path) -> None:
        self._make(build_directory, "headers_install")
        result = self._make(build_directory, "kernelversion")
        lines = result.stdout.strip().splitlines()
        self.record_version(lines[-1] if lines else "")

    def version_check(self) -> Optional[VersionCheck]:
        version_header = self.header_directory / "include" / "linux" / "version.h"
        # Any host clang can preprocess the header
        return VersionCheck(
            command="clang",
            arguments=("-E", "-P", "-include", str(version_header), "-"),
            pattern=rf"(?m)^\s*{SEMVER}\s*$",
            comparator=exact_version(self.recorded_version),
            stdin=VERSION_MACRO_PROGRAM,
        )
