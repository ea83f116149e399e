"""
Recipe registry.

Recipes register themselves under their package name together with the
capabilities they consume. The CLI builds one subcommand per registered
recipe and offers exactly the flags its capabilities need.

Usage:
    from distrobuilder.build.registry import get_global_registry

    registry = get_global_registry()
    entry = registry.get("zstd")
    builder = entry.factory(context)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional

from distrobuilder.build.builder import Builder
from distrobuilder.build.context import BuildContext, Capability

logger = logging.getLogger(__name__)

BuilderFactory = Callable[[BuildContext], Builder]


@dataclass(frozen=True)
class RecipeEntry:
    """A registered recipe."""

    name: str
    factory: BuilderFactory
    capabilities: FrozenSet[Capability]
    description: str = ""


class RecipeRegistry:
    """
    Registry of package recipes.

    Example:
        >>> registry = RecipeRegistry()
        >>> registry.register_builder(ZstdBuilder)
        >>> registry.has("zstd")
        True
    """

    def __init__(self):
        self._entries: Dict[str, RecipeEntry] = {}

    def register(
        self,
        name: str,
        factory: BuilderFactory,
        capabilities: FrozenSet[Capability],
        description: str = "",
    ) -> None:
        """
        Register a recipe.

        Raises:
            ValueError: If a recipe with this name is already registered
        """
        if name in self._entries:
            raise ValueError(f"Recipe '{name}' is already registered")
        self._entries[name] = RecipeEntry(name, factory, frozenset(capabilities), description)
        logger.debug(f"Registered recipe: {name}")

    def register_builder(self, builder_class) -> None:
        """Register a Builder subclass using its class attributes."""
        self.register(
            builder_class.name,
            builder_class,
            builder_class.capabilities,
            builder_class.description,
        )

    def get(self, name: str) -> RecipeEntry:
        """
        Look up a recipe by name.

        Raises:
            KeyError: If no recipe has this name
        """
        if name not in self._entries:
            raise KeyError(f"Recipe '{name}' not found in registry")
        return self._entries[name]

    def has(self, name: str) -> bool:
        return name in self._entries

    def list(self) -> List[RecipeEntry]:
        """Registered recipes sorted by name."""
        return [self._entries[name] for name in sorted(self._entries)]


_global_registry: Optional[RecipeRegistry] = None


def get_global_registry() -> RecipeRegistry:
    """Get the registry holding the bundled recipes (created on first use)."""
    global _global_registry
    if _global_registry is None:
        from distrobuilder.build.recipes import register_recipes

        _global_registry = RecipeRegistry()
        register_recipes(_global_registry)
    return _global_registry


def reset_global_registry() -> None:
    """Drop the global registry (for tests)."""
    global _global_registry
    _global_registry = None
