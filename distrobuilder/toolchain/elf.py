"""
ELF header inspection for target verification.

Reads the file class, byte order, machine and the PT_INTERP program header
naming the dynamic loader, using pyelftools.
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Union

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from distrobuilder.core.exceptions import VerificationError

# e_machine enum names, as decoded by pyelftools, to short machine names
MACHINE_NAMES: Dict[str, str] = {
    "EM_386": "386",
    "EM_MIPS": "mips",
    "EM_PPC": "ppc",
    "EM_PPC64": "ppc64",
    "EM_S390": "s390",
    "EM_ARM": "arm",
    "EM_X86_64": "x86_64",
    "EM_AARCH64": "aarch64",
    "EM_RISCV": "riscv",
}

# Triplet machine spellings accepted for each ELF machine name
MACHINE_ALIASES: Dict[str, FrozenSet[str]] = {
    "386": frozenset({"i386", "i486", "i586", "i686", "x86"}),
    "x86_64": frozenset({"x86_64", "amd64"}),
    "aarch64": frozenset({"aarch64", "arm64"}),
    "arm": frozenset({"arm", "armv6", "armv7", "armv7a", "armhf", "armel"}),
    "riscv": frozenset({"riscv32", "riscv64"}),
    "ppc": frozenset({"powerpc", "ppc"}),
    "ppc64": frozenset({"powerpc64", "powerpc64le", "ppc64", "ppc64le"}),
    "s390": frozenset({"s390", "s390x"}),
}


@dataclass(frozen=True)
class ElfImage:
    """
    Decoded ELF header fields.

    Attributes:
        elf_class: 32 or 64
        little_endian: Byte order of the image
        machine: e_machine as decoded by pyelftools (enum name, or the raw
            number for machines it does not know)
        interpreter: PT_INTERP path, None for statically linked images
    """

    elf_class: int
    little_endian: bool
    machine: Union[str, int]
    interpreter: Optional[str]

    @property
    def machine_name(self) -> str:
        return MACHINE_NAMES.get(self.machine, f"unknown({self.machine})")

    @property
    def is_static(self) -> bool:
        return self.interpreter is None

    def matches_machine(self, triplet_machine: str) -> bool:
        """Whether the image's machine is the triplet's machine (case-insensitive)."""
        wanted = triplet_machine.lower()
        name = self.machine_name
        return wanted == name or wanted in MACHINE_ALIASES.get(name, frozenset())


def _interpreter(elf: ELFFile, size: int) -> Optional[str]:
    for segment in elf.iter_segments():
        if segment["p_type"] != "PT_INTERP":
            continue
        if segment["p_offset"] + segment["p_filesz"] > size:
            raise VerificationError("PT_INTERP segment extends past end of file")
        name = segment.get_interp_name()
        if isinstance(name, bytes):
            name = name.decode("utf-8", errors="replace")
        return name
    return None


def parse_elf(data: bytes) -> ElfImage:
    """
    Decode an ELF image.

    Args:
        data: Complete file contents

    Returns:
        ElfImage with machine and interpreter

    Raises:
        VerificationError: If the data is not a well-formed ELF image
    """
    try:
        elf = ELFFile(io.BytesIO(data))
        return ElfImage(
            elf_class=elf.elfclass,
            little_endian=elf.little_endian,
            machine=elf.header["e_machine"],
            interpreter=_interpreter(elf, len(data)),
        )
    except ELFError as e:
        raise VerificationError(f"Not a valid ELF image: {e}") from e


def read_elf(path: Union[str, Path]) -> ElfImage:
    """
    Read and decode an ELF file.

    Raises:
        VerificationError: If the file is missing or not an ELF image
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise VerificationError(f"Cannot read {path}: {e}") from e

    try:
        return parse_elf(data)
    except VerificationError as e:
        raise VerificationError(f"{path}: {e}") from e
