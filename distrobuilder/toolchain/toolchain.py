"""
Cross toolchain description.

A Toolchain is a directory of clang/LLVM executables plus the triplet they
are asked to target. Every compiler and linker path handed to a backend is
derived from the toolchain's bin directory, never from $PATH.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from distrobuilder.cross.triplet import Triplet

logger = logging.getLogger(__name__)

C_COMPILER = "clang"
CXX_COMPILER = "clang++"
LINKER = "ld.lld"

REQUIRED_TOOLS: Tuple[str, ...] = (C_COMPILER, CXX_COMPILER, LINKER)


@dataclass(frozen=True)
class Toolchain:
    """
    A clang/LLVM toolchain targeting one triplet.

    Attributes:
        bin_directory: Directory holding clang, clang++ and ld.lld
        triplet: Target triplet the toolchain compiles for
    """

    bin_directory: Path
    triplet: Triplet

    @classmethod
    def from_directory(cls, directory: Path, triplet: Triplet) -> "Toolchain":
        """
        Locate the bin directory inside a toolchain installation.

        Accepts the installation root (with ``usr/bin`` or ``bin`` below it)
        or the bin directory itself.

        Args:
            directory: Toolchain installation or bin directory
            triplet: Target triplet

        Returns:
            Toolchain rooted at the detected bin directory
        """
        directory = Path(directory).resolve()
        for candidate in (directory / "usr" / "bin", directory / "bin"):
            if (candidate / C_COMPILER).exists():
                logger.debug(f"Using toolchain bin directory {candidate}")
                return cls(bin_directory=candidate, triplet=triplet)
        return cls(bin_directory=directory, triplet=triplet)

    def tool_path(self, tool: str) -> Path:
        """Path of a tool inside the toolchain bin directory."""
        return self.bin_directory / tool

    @property
    def c_compiler(self) -> Path:
        return self.tool_path(C_COMPILER)

    @property
    def cxx_compiler(self) -> Path:
        return self.tool_path(CXX_COMPILER)

    @property
    def linker(self) -> Path:
        return self.tool_path(LINKER)
