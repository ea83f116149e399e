"""
musl C library.

The built ``libc.so`` doubles as the dynamic loader and prints its version
on stderr when executed directly, which is used to verify the build.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.core.exceptions import FilesystemError
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import MUSL
from distrobuilder.toolchain.versions import SEMVER, VersionCheck, exact_version

LIBC_PATH = "usr/lib/libc.so"


class MuslLibcBuilder(StandardBuilder):
    name = "musl-libc"
    description = "musl C standard library"
    backend = "configure"
    host_commands = ("git", "make")
    binaries = (LIBC_PATH,)

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return MUSL.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        self.gnu_configure(build_directory)

    def compile(self, build_directory: Path) -> None:
        self.make_build(build_directory, targets=["install"])

        version_file = self.source_directory / "VERSION"
        try:
            self.record_version(version_file.read_text())
        except OSError as e:
            raise FilesystemError(f"Failed to read musl version file {version_file}: {e}") from e

    def version_check(self) -> Optional[VersionCheck]:
        return VersionCheck(
            command=str(self.output_directory / LIBC_PATH),
            arguments=("--version",),
            pattern=rf"(?m)^Version {SEMVER}$",
            comparator=exact_version(self.recorded_version),
            stream="stderr",
            # Running libc.so prints usage and exits 1
            ignore_exit_code=True,
        )
