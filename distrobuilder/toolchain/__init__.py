"""
Toolchain description, host requirement checks and build verification.
"""

from .toolchain import Toolchain, REQUIRED_TOOLS

__all__ = ["Toolchain", "REQUIRED_TOOLS"]
