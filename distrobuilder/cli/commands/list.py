"""
List command implementation.

Prints every registered package with the inputs its build accepts.
"""

import logging

logger = logging.getLogger(__name__)


def run(args, registry) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments
        registry: Recipe registry

    Returns:
        Exit code (0 for success)
    """
    entries = registry.list()
    width = max((len(entry.name) for entry in entries), default=0)

    for entry in entries:
        capabilities = ", ".join(sorted(c.value for c in entry.capabilities))
        print(f"{entry.name:<{width}}  {entry.description}")
        print(f"{'':<{width}}  accepts: {capabilities}")

    logger.debug(f"{len(entries)} package(s) registered")
    return 0
