"""
Configuration: mergeable option values, per-backend option sets, concern
layers and the YAML project configuration.
"""

from .options import (
    OptionValue,
    StringValue,
    ToggleValue,
    BoolValue,
    SeparatorValue,
    ON,
    OFF,
    FORCE_ON,
    separated,
    merge_option_maps,
)
from .option_sets import (
    RunnerOptions,
    CMakeOptions,
    ConfigureOptions,
    MakeOptions,
    MesonOptions,
)

__all__ = [
    "OptionValue",
    "StringValue",
    "ToggleValue",
    "BoolValue",
    "SeparatorValue",
    "ON",
    "OFF",
    "FORCE_ON",
    "separated",
    "merge_option_maps",
    "RunnerOptions",
    "CMakeOptions",
    "ConfigureOptions",
    "MakeOptions",
    "MesonOptions",
]
