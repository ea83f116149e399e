"""
PCRE2 regular expression library.
"""

from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import ConfigureOptions
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import PCRE2

CONFIGURE_FLAGS = [
    "--enable-pcre2-16",
    "--enable-pcre2-32",
    "--enable-jit=auto",
    "--enable-jit-sealloc",
    "--enable-newline-is-any",
    "--enable-unicode",
    "--enable-pcre2grep-libz",
]


class PCRE2Builder(StandardBuilder):
    """Build PCRE2 from a generated configure script with 8, 16 and 32 bit libraries."""

    name = "pcre2"
    description = "Perl compatible regular expression library"
    backend = "configure"
    host_commands = ("git", "make", "libtool", "autoconf", "automake")
    binaries = (
        "usr/bin/pcre2grep",
        "usr/bin/pcre2test",
        "usr/lib/libpcre2-8.so",
        "usr/lib/libpcre2-16.so",
        "usr/lib/libpcre2-32.so",
        "usr/lib/libpcre2-posix.so",
    )

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return PCRE2.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        self.autogen_configure(
            build_directory, ConfigureOptions(flags=list(CONFIGURE_FLAGS))
        )

    def compile(self, build_directory: Path) -> None:
        self.make_build(build_directory, targets=["install"])
        self.run_libtool_finish()
