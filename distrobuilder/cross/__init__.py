"""
Cross-compilation target support.
"""

from .triplet import Triplet, host_machine, default_target_triplet

__all__ = ["Triplet", "host_machine", "default_target_triplet"]
