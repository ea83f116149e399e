"""
Typed, mergeable configuration options.

A ConfigurationOption is one of:

- StringValue: a plain string
- ToggleValue: an on / off / forced-on tri-state (CMake style)
- BoolValue: a true / false value (Meson style)
- SeparatorValue: a list of strings joined by a separator

Option maps are merged left to right. Keys present in only one map pass
through; a key present in several maps must hold SeparatorValues with the
same separator, which are combined with order-preserving deduplication.
Any other overlap raises UnmergeableOptionError rather than silently
picking one side.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from distrobuilder.core.exceptions import UnmergeableOptionError


# ============================================================================
# Option Values
# ============================================================================


class OptionValue(ABC):
    """Base class for configuration option values."""

    @abstractmethod
    def render(self) -> str:
        """Render the value as it appears on a command line or in a file."""
        pass

    def merge(self, other: "OptionValue") -> Optional["OptionValue"]:
        """
        Combine this value with another for the same key.

        Returns:
            The merged value, or None if the two values cannot be merged
        """
        return None

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class StringValue(OptionValue):
    """A plain string option."""

    value: str

    def render(self) -> str:
        return self.value


@dataclass(frozen=True)
class ToggleValue(OptionValue):
    """
    An on/off option with an additional forced-on state.

    Renders as OFF, ON or FORCE_ON, the spellings CMake projects such as
    LLVM accept for tri-state cache variables.
    """

    enabled: bool
    forced: bool = False

    def render(self) -> str:
        if not self.enabled:
            return "OFF"
        return "FORCE_ON" if self.forced else "ON"


ON = ToggleValue(True)
OFF = ToggleValue(False)
FORCE_ON = ToggleValue(True, forced=True)


@dataclass(frozen=True)
class BoolValue(OptionValue):
    """A boolean option rendered as true/false."""

    value: bool

    def render(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class SeparatorValue(OptionValue):
    """
    A list of values joined with a separator.

    Example:
        >>> SeparatorValue(("-O2", "-g")).render()
        '-O2 -g'
    """

    values: Sequence[str] = field(default_factory=tuple)
    separator: str = " "

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))

    def render(self) -> str:
        return self.separator.join(self.values)

    def merge(self, other: OptionValue) -> Optional[OptionValue]:
        if not isinstance(other, SeparatorValue) or other.separator != self.separator:
            return None

        merged: List[str] = []
        for value in (*self.values, *other.values):
            if value not in merged:
                merged.append(value)
        return SeparatorValue(tuple(merged), self.separator)


def separated(*values: str, separator: str = " ") -> SeparatorValue:
    """Build a SeparatorValue from positional values."""
    return SeparatorValue(values, separator)


def as_option(value) -> OptionValue:
    """
    Coerce a plain Python value into an OptionValue.

    Args:
        value: OptionValue, bool, list/tuple of strings or any scalar

    Returns:
        Equivalent OptionValue
    """
    if isinstance(value, OptionValue):
        return value
    if isinstance(value, bool):
        return BoolValue(value)
    if isinstance(value, (list, tuple)):
        return SeparatorValue(tuple(str(v) for v in value))
    return StringValue(str(value))


# ============================================================================
# Merging
# ============================================================================

OptionMap = Dict[str, OptionValue]


def merge_option_maps(*maps: Optional[Mapping[str, OptionValue]]) -> OptionMap:
    """
    Merge option maps left to right.

    Args:
        *maps: Option maps to merge; None entries are skipped

    Returns:
        New map holding every key, in first-seen order

    Raises:
        UnmergeableOptionError: If a key appears in several maps with values
            that cannot be merged

    Example:
        >>> merge_option_maps(
        ...     {"CFLAGS": separated("-a", "-b")},
        ...     {"CFLAGS": separated("-b", "-c")},
        ... )["CFLAGS"].render()
        '-a -b -c'
    """
    merged: OptionMap = {}
    for option_map in maps:
        if not option_map:
            continue
        for key, value in option_map.items():
            if key not in merged:
                merged[key] = value
                continue
            combined = merged[key].merge(value)
            if combined is None:
                raise UnmergeableOptionError(key, merged[key], value)
            merged[key] = combined
    return merged


def merge_nested_option_maps(
    *maps: Optional[Mapping[str, Mapping[str, OptionValue]]]
) -> Dict[str, OptionMap]:
    """
    Merge two-level option maps (section -> key -> value).

    Sections are merged independently with merge_option_maps.
    """
    sections: Dict[str, List[Mapping[str, OptionValue]]] = {}
    for nested in maps:
        if not nested:
            continue
        for section, values in nested.items():
            sections.setdefault(section, []).append(values)

    merged: Dict[str, OptionMap] = {}
    for section, section_maps in sections.items():
        try:
            merged[section] = merge_option_maps(*section_maps)
        except UnmergeableOptionError as e:
            raise UnmergeableOptionError(f"{section}.{e.key}", e.left, e.right) from e
    return merged


def render_option_map(options: Mapping[str, OptionValue]) -> Dict[str, str]:
    """Render every value in an option map to a string."""
    return {key: value.render() for key, value in options.items()}
