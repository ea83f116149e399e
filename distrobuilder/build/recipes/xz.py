"""
XZ Utils.

XZ is built twice from one generated source tree: a shared build providing
liblzma and the full xz tool, then a minimal static build providing the
standalone xzdec decompressor.
"""

from pathlib import Path
from typing import List, Optional

from distrobuilder.build.builder import BuildPhase
from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import ConfigureOptions
from distrobuilder.core.filesystem import copy_tree
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import XZ

SHARED_FLAGS = ["--disable-static", "--disable-xzdec", "--disable-lzmadec"]
STATIC_FLAGS = [
    "--disable-shared",
    "--disable-nls",
    "--disable-encoders",
    "--disable-threads",
]


class XZBuilder(StandardBuilder):
    name = "xz"
    description = "XZ Utils compression library and tools"
    backend = "configure"
    host_commands = ("git", "make", "autoconf", "automake", "libtool")
    binaries = ("usr/bin/xz", "usr/bin/xzdec", "usr/lib/liblzma.so")

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return XZ.source(path, ref)

    def phases(self) -> List[BuildPhase]:
        return [
            BuildPhase("shared", "configure", self.configure, self.compile),
            BuildPhase(
                "static", "configure", self.configure_static, self.compile_static
            ),
        ]

    # Shared stage

    def configure(self, build_directory: Path) -> None:
        self.autogen_configure(build_directory, ConfigureOptions(flags=SHARED_FLAGS))

    def compile(self, build_directory: Path) -> None:
        self.make_build(build_directory, targets=["all", "install-strip"])

    # Static stage

    def configure_static(self, build_directory: Path) -> None:
        self.autogen_configure(build_directory, ConfigureOptions(flags=STATIC_FLAGS))

    def compile_static(self, build_directory: Path) -> None:
        src = build_directory / "src"
        self.make_build(build_directory, targets=["all"], directory=src / "liblzma")
        self.make_build(
            build_directory, targets=["all", "install-strip"], directory=src / "xzdec"
        )

        copy_tree(
            self.source_directory / "extra",
            self.output_directory / "usr" / "share" / "doc" / "xz" / "extra",
        )
