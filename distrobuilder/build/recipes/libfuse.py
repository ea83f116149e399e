"""
libfuse userspace filesystem library and mount helpers.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import MesonOptions
from distrobuilder.config.options import BoolValue
from distrobuilder.core.exceptions import FilesystemError
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import LIBFUSE

logger = logging.getLogger(__name__)

# Unversioned names expected by tools written against fuse 2
COMPAT_SYMLINKS = {
    "usr/bin/fusermount": "fusermount3",
    "usr/sbin/mount.fuse": "mount.fuse3",
}


class LibFUSEBuilder(StandardBuilder):
    name = "libfuse"
    description = "FUSE userspace library and mount helpers"
    backend = "meson"
    host_commands = ("git", "meson", "ninja")
    binaries = (
        "usr/bin/fusermount3",
        "usr/sbin/mount.fuse3",
        "usr/lib/libfuse3.so",
    )

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return LIBFUSE.source(path, ref)

    def configure(self, build_directory: Path) -> None:
        options = MesonOptions(
            options={"examples": BoolValue(False), "tests": BoolValue(False)}
        )
        self.meson_setup(build_directory, options)

    def compile(self, build_directory: Path) -> None:
        self.ninja_build(build_directory)

        for link, target in COMPAT_SYMLINKS.items():
            link_path = self.output_directory / link
            logger.debug(f"Linking {link_path} -> {target}")
            try:
                if link_path.is_symlink():
                    link_path.unlink()
                os.symlink(target, link_path)
            except OSError as e:
                raise FilesystemError(f"Failed to create symlink {link_path}: {e}") from e
