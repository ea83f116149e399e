"""
Zstandard compression library and tools.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import CMakeOptions
from distrobuilder.config.options import ON
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import ZSTD


class ZstdBuilder(StandardBuilder):
    """Build zstd with CMake, shared and static, with all codecs enabled."""

    name = "zstd"
    description = "Zstandard compression library and command line tools"
    backend = "cmake"
    host_commands = ("git", "cmake", "ninja")
    binaries = (
        "usr/bin/zstd",
        "usr/bin/unzstd",
        "usr/lib/libzstd.so",
    )

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return ZSTD.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        options = CMakeOptions(
            defines={
                "ZSTD_MULTITHREAD_SUPPORT": ON,
                "ZSTD_BUILD_SHARED": ON,
                "ZSTD_PROGRAMS_LINK_SHARED": ON,
                "ZSTD_BUILD_STATIC": ON,
                "ZSTD_BUILD_TESTS": ON,
                "ZSTD_ZLIB_SUPPORT": ON,
                "ZSTD_LZMA_SUPPORT": ON,
                "ZSTD_LZ4_SUPPORT": ON,
            }
        )
        # The CMake project lives below build/cmake
        self.cmake_configure(
            build_directory,
            options,
            source_path=self.source_directory / "build" / "cmake",
        )

    def compile(self, build_directory: Path) -> None:
        self.ninja_build(build_directory)
