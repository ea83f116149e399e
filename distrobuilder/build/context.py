"""
Build context and recipe capabilities.

A recipe declares which inputs it consumes as a set of capabilities when it
is registered. The CLI offers exactly the flags those capabilities need,
and the Builder validates the BuildContext against them once, at
construction, instead of probing for optional behaviour at every call site.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from distrobuilder.backends.process import Executor, execute
from distrobuilder.config.layers import OverrideLayer
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import ConfigurationError
from distrobuilder.cross.triplet import Triplet
from distrobuilder.toolchain.toolchain import Toolchain

logger = logging.getLogger(__name__)


class Capability(Enum):
    """Inputs a recipe can consume."""

    SOURCE = "source"
    FILESYSTEM_OUTPUT = "filesystem-output"
    GIT_REF = "git-ref"
    TOOLCHAIN = "toolchain"
    TARGET_TRIPLET = "target-triplet"
    ROOT_FS = "root-fs"


@dataclass
class BuildContext:
    """
    Everything one build reads from its caller.

    Attributes:
        source_directory: Worktree location (None: ephemeral temp directory)
        output_directory: Staging directory (None: retained temp directory)
        git_ref: Reference to build (None: the recipe's default)
        toolchain: Cross toolchain compiling the package
        target_triplet: Target for recipes building a compiler rather than
            using one (defaults to the toolchain's triplet)
        root_fs_directory: Target root filesystem used as sysroot
        overrides: Caller option overrides merged after the package options
        cancellation: Shared cancellation token and deadline
        executor: Function executing process invocations
    """

    source_directory: Optional[Path] = None
    output_directory: Optional[Path] = None
    git_ref: Optional[str] = None
    toolchain: Optional[Toolchain] = None
    target_triplet: Optional[Triplet] = None
    root_fs_directory: Optional[Path] = None
    overrides: Optional[OverrideLayer] = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    executor: Executor = execute

    @property
    def triplet(self) -> Optional[Triplet]:
        if self.target_triplet is not None:
            return self.target_triplet
        return self.toolchain.triplet if self.toolchain is not None else None

    def require(self, capability: Capability) -> None:
        """
        Ensure the context provides what a capability needs.

        Source, output and git ref inputs have defaults; the toolchain,
        target triplet and root filesystem must be supplied.

        Raises:
            ConfigurationError: If a required input is missing
        """
        if capability is Capability.TOOLCHAIN and self.toolchain is None:
            raise ConfigurationError("A toolchain directory is required")
        if capability is Capability.TARGET_TRIPLET and self.triplet is None:
            raise ConfigurationError("A target triplet is required")
        if capability is Capability.ROOT_FS:
            if self.root_fs_directory is None:
                raise ConfigurationError("A root filesystem directory is required")
            if not Path(self.root_fs_directory).is_dir():
                raise ConfigurationError(
                    f"Root filesystem directory does not exist: {self.root_fs_directory}"
                )
