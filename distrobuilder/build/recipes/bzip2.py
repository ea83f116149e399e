"""
bzip2 compression library and tools.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import CMakeOptions
from distrobuilder.config.options import OFF, ON
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import BZIP2


class Bzip2Builder(StandardBuilder):
    name = "bzip2"
    description = "bzip2 compression library and command line tools"
    backend = "cmake"
    host_commands = ("git", "cmake", "ninja")
    binaries = (
        "usr/bin/bzip2",
        "usr/bin/bzip2recover",
        "usr/lib/libbz2.so",
    )

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return BZIP2.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        options = CMakeOptions(
            defines={
                "ENABLE_EXAMPLES": OFF,
                "ENABLE_APP": ON,
                "ENABLE_STATIC_LIB": ON,
                "ENABLE_SHARED_LIB": ON,
                "ENABLE_STATIC_LIB_IS_PIC": ON,
            }
        )
        self.cmake_configure(build_directory, options)

    def compile(self, build_directory: Path) -> None:
        self.ninja_build(build_directory)
