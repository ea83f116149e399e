"""
Per-backend option sets.

Each build backend consumes a different shape of configuration: CMake takes
cache defines, configure scripts take ``--name=value`` arguments, bare flags
and trailing ``NAME=value`` variables, Make takes variables, Meson takes
``-D`` options plus cross/native files, and every process takes an
environment overlay. An OptionSet of each kind can be merged with others of
the same kind using the rules in distrobuilder.config.options.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, TypeVar

from distrobuilder.config.options import (
    OptionMap,
    merge_nested_option_maps,
    merge_option_maps,
)

T = TypeVar("T")


def _present(sets: Sequence[Optional[T]]) -> List[T]:
    return [s for s in sets if s is not None]


def _union(*lists: Sequence[str]) -> List[str]:
    merged: List[str] = []
    for items in lists:
        for item in items:
            if item not in merged:
                merged.append(item)
    return merged


@dataclass
class RunnerOptions:
    """Environment variables overlaid on the inherited process environment."""

    environment: OptionMap = field(default_factory=dict)

    @classmethod
    def merge(cls, *sets: Optional["RunnerOptions"]) -> "RunnerOptions":
        present = _present(sets)
        return cls(environment=merge_option_maps(*(s.environment for s in present)))


@dataclass
class CMakeOptions:
    """CMake cache variables to define (-D) and to remove (-U)."""

    defines: OptionMap = field(default_factory=dict)
    undefines: List[str] = field(default_factory=list)

    @classmethod
    def merge(cls, *sets: Optional["CMakeOptions"]) -> "CMakeOptions":
        present = _present(sets)
        return cls(
            defines=merge_option_maps(*(s.defines for s in present)),
            undefines=_union(*(s.undefines for s in present)),
        )


@dataclass
class ConfigureOptions:
    """
    Options for an autoconf-style configure script.

    Attributes:
        arguments: Rendered as ``--name=value`` (keys include the dashes)
        flags: Bare flags such as ``--disable-static``
        variables: Trailing ``NAME=value`` assignments (CC, CFLAGS, ...)
    """

    arguments: OptionMap = field(default_factory=dict)
    flags: List[str] = field(default_factory=list)
    variables: OptionMap = field(default_factory=dict)

    @classmethod
    def merge(cls, *sets: Optional["ConfigureOptions"]) -> "ConfigureOptions":
        present = _present(sets)
        return cls(
            arguments=merge_option_maps(*(s.arguments for s in present)),
            flags=_union(*(s.flags for s in present)),
            variables=merge_option_maps(*(s.variables for s in present)),
        )


@dataclass
class MakeOptions:
    """Variables passed on the make command line."""

    variables: OptionMap = field(default_factory=dict)

    @classmethod
    def merge(cls, *sets: Optional["MakeOptions"]) -> "MakeOptions":
        present = _present(sets)
        return cls(variables=merge_option_maps(*(s.variables for s in present)))


@dataclass
class MesonOptions:
    """
    Options for ``meson setup``.

    Attributes:
        options: Project and built-in options passed as ``-Dname=value``
        cross_file: Sections of the generated cross file
            (binaries, host_machine, properties)
        native_file: Sections of the generated native file
    """

    options: OptionMap = field(default_factory=dict)
    cross_file: Dict[str, OptionMap] = field(default_factory=dict)
    native_file: Dict[str, OptionMap] = field(default_factory=dict)

    @classmethod
    def merge(cls, *sets: Optional["MesonOptions"]) -> "MesonOptions":
        present = _present(sets)
        return cls(
            options=merge_option_maps(*(s.options for s in present)),
            cross_file=merge_nested_option_maps(*(s.cross_file for s in present)),
            native_file=merge_nested_option_maps(*(s.native_file for s in present)),
        )
