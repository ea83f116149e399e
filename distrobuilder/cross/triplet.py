"""
Target triplet handling.

A triplet identifies a compilation target as ``machine[-vendor]-kernel[-libc]``
(e.g. ``x86_64-pc-linux-musl`` or ``aarch64-linux-musl``). Parsing and
formatting round-trip exactly, so a Triplet can be passed on the command line,
stored in configuration and handed to compilers without drift.
"""

import logging
import platform
from dataclasses import dataclass
from typing import Dict

from distrobuilder.core.exceptions import InvalidTripletError

logger = logging.getLogger(__name__)

# Kernel names recognised in the second component of vendor-less triplets
KNOWN_KERNELS = ("linux",)

# platform.machine() spellings that differ from triplet machine names
HOST_MACHINE_ALIASES: Dict[str, str] = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i386": "i686",
    "i586": "i686",
}

# musl's name for each machine's architecture directory and loader
MUSL_ARCHITECTURES: Dict[str, str] = {
    "x86_64": "x86_64",
    "aarch64": "aarch64",
    "i386": "i386",
    "i486": "i386",
    "i586": "i386",
    "i686": "i386",
    "arm": "arm",
    "armv6": "arm",
    "armv7": "arm",
    "riscv64": "riscv64",
    "powerpc64le": "powerpc64",
    "s390x": "s390x",
}


@dataclass(frozen=True)
class Triplet:
    """
    A parsed target triplet.

    Attributes:
        machine: CPU architecture (e.g., 'x86_64', 'aarch64')
        vendor: Vendor component, empty when the triplet omits it
        kernel: Operating system kernel (e.g., 'linux')
        libc: C library / ABI, empty when the triplet omits it
    """

    machine: str
    vendor: str
    kernel: str
    libc: str = ""

    @classmethod
    def parse(cls, value: str) -> "Triplet":
        """
        Parse a triplet string.

        Args:
            value: Triplet such as 'x86_64-pc-linux-musl'

        Returns:
            Parsed Triplet

        Raises:
            InvalidTripletError: If the string has fewer than two components

        Example:
            >>> Triplet.parse('aarch64-linux-musl')
            Triplet(machine='aarch64', vendor='', kernel='linux', libc='musl')
        """
        parts = value.strip().split("-")
        if len(parts) < 2 or not all(parts):
            raise InvalidTripletError(
                f"Invalid target triplet '{value}': expected machine[-vendor]-kernel[-libc]"
            )

        machine, rest = parts[0], parts[1:]
        vendor = ""
        if rest[0].lower() not in KNOWN_KERNELS and len(rest) > 1:
            vendor, rest = rest[0], rest[1:]

        kernel = rest[0]
        libc = "-".join(rest[1:])
        return cls(machine=machine, vendor=vendor, kernel=kernel, libc=libc)

    def format(self) -> str:
        """Render the triplet in machine[-vendor]-kernel[-libc] form."""
        parts = [self.machine]
        if self.vendor:
            parts.append(self.vendor)
        parts.append(self.kernel)
        if self.libc:
            parts.append(self.libc)
        return "-".join(parts)

    def __str__(self) -> str:
        return self.format()

    @property
    def musl_architecture(self) -> str:
        """musl's architecture name for this machine."""
        return MUSL_ARCHITECTURES.get(self.machine.lower(), self.machine.lower())

    @property
    def dynamic_loader_name(self) -> str:
        """
        File name of the target's dynamic loader.

        Example:
            >>> Triplet.parse('x86_64-pc-linux-musl').dynamic_loader_name
            'ld-musl-x86_64.so.1'
        """
        machine = self.machine
        if self.libc == "musl":
            machine = self.musl_architecture
        return f"ld-{self.libc}-{machine}.so.1"

    @property
    def dynamic_loader_paths(self):
        """The conventional absolute locations of the dynamic loader."""
        name = self.dynamic_loader_name
        return (f"/lib/{name}", f"/usr/lib/{name}")


def host_machine() -> str:
    """
    Get the host CPU architecture in triplet spelling.

    Returns:
        Machine name (e.g., 'x86_64', 'aarch64')
    """
    machine = platform.machine().lower()
    return HOST_MACHINE_ALIASES.get(machine, machine)


def default_target_triplet() -> Triplet:
    """
    Get the default target: a musl Linux triplet for the host machine.

    Returns:
        Triplet such as x86_64-pc-linux-musl
    """
    return Triplet(machine=host_machine(), vendor="pc", kernel="linux", libc="musl")
