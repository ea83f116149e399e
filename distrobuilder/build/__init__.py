"""
Build orchestration: contexts, the Builder lifecycle and the recipe registry.
"""

from .context import BuildContext, Capability
from .builder import Builder, BuildPhase, BuildState
from .standard import StandardBuilder
from .registry import RecipeEntry, RecipeRegistry, get_global_registry, reset_global_registry

__all__ = [
    "BuildContext",
    "Capability",
    "Builder",
    "BuildPhase",
    "BuildState",
    "StandardBuilder",
    "RecipeEntry",
    "RecipeRegistry",
    "get_global_registry",
    "reset_global_registry",
]
