"""
zlib-ng, built in zlib compatible mode so it replaces zlib.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import CMakeOptions
from distrobuilder.config.options import ON
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import ZLIB_NG


class ZlibNgBuilder(StandardBuilder):
    name = "zlib-ng"
    description = "zlib-ng compression library (zlib compatible API)"
    backend = "cmake"
    host_commands = ("git", "cmake", "ninja")
    binaries = (
        "usr/lib/libz.so",
        "usr/bin/minigzip",
        "usr/bin/minideflate",
    )

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return ZLIB_NG.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        options = CMakeOptions(defines={"ZLIB_COMPAT": ON, "INSTALL_UTILS": ON})
        self.cmake_configure(build_directory, options)

    def compile(self, build_directory: Path) -> None:
        self.ninja_build(build_directory)
