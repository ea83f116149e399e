"""
LZ4 compression library and tools.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import CMakeOptions
from distrobuilder.config.options import ON
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import LZ4


class LZ4Builder(StandardBuilder):
    name = "lz4"
    description = "LZ4 compression library and command line tool"
    backend = "cmake"
    host_commands = ("git", "cmake", "ninja")
    binaries = ("usr/bin/lz4", "usr/lib/liblz4.so")

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return LZ4.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        options = CMakeOptions(
            defines={"BUILD_SHARED_LIBS": ON, "BUILD_STATIC_LIBS": ON}
        )
        self.cmake_configure(
            build_directory,
            options,
            source_path=self.source_directory / "build" / "cmake",
        )

    def compile(self, build_directory: Path) -> None:
        self.ninja_build(build_directory)
