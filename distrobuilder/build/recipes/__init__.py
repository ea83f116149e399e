"""
Bundled package recipes.
"""

from .bzip2 import Bzip2Builder
from .cross_llvm import CrossLLVMBuilder
from .libfuse import LibFUSEBuilder
from .linux_headers import LinuxHeadersBuilder
from .lz4 import LZ4Builder
from .musl_libc import MuslLibcBuilder
from .pcre2 import PCRE2Builder
from .xz import XZBuilder
from .zlib_ng import ZlibNgBuilder
from .zstd import ZstdBuilder

RECIPES = [
    Bzip2Builder,
    CrossLLVMBuilder,
    LibFUSEBuilder,
    LinuxHeadersBuilder,
    LZ4Builder,
    MuslLibcBuilder,
    PCRE2Builder,
    XZBuilder,
    ZlibNgBuilder,
    ZstdBuilder,
]


def register_recipes(registry) -> None:
    """Register every bundled recipe in a registry."""
    for builder_class in RECIPES:
        registry.register_builder(builder_class)


__all__ = [builder_class.__name__ for builder_class in RECIPES] + [
    "RECIPES",
    "register_recipes",
]
