"""
Builder orchestrator.

A Builder carries one package through host requirement checks, source
resolution, an ordered list of build phases and verification:

    Created -> HostChecked -> SourceResolved -> {Configured[i] -> Built[i]}*
            -> Verified -> Done

Each phase runs in its own ephemeral build directory. A failure in phase k
aborts phases k+1..N, is tagged with the package, phase and backend, and
leaves the builder Failed so verification never runs.

Builders are single use: construct a new one for every attempt.
"""

import logging
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional, Sequence

from distrobuilder.backends import CommandResult, Runner, run
from distrobuilder.build.context import BuildContext, Capability
from distrobuilder.config.layers import (
    ConfigLayer,
    OutputLayer,
    SysrootLayer,
    ToolchainLayer,
)
from distrobuilder.core.exceptions import (
    BuilderStateError,
    DistroBuilderError,
    FilesystemError,
    VerificationError,
)
from distrobuilder.core.filesystem import clear_directory, safe_rmtree, temporary_directory
from distrobuilder.core.locking import output_directory_lock
from distrobuilder.cross.triplet import Triplet
from distrobuilder.source.git import GitSourceResolver, SourceRef
from distrobuilder.toolchain.requirements import (
    check_commands,
    check_versions,
    probe_toolchain,
)
from distrobuilder.toolchain.verifier import BuildVerifier, VerificationResult
from distrobuilder.toolchain.versions import VersionCheck

logger = logging.getLogger(__name__)


class BuildState(Enum):
    """Lifecycle states of a Builder."""

    CREATED = "created"
    HOST_CHECKED = "host-checked"
    SOURCE_RESOLVED = "source-resolved"
    CONFIGURED = "configured"
    BUILT = "built"
    VERIFIED = "verified"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BuildPhase:
    """
    One configure + build step against a fresh build directory.

    Attributes:
        name: Phase name used in logs and errors
        backend: Backend driving the phase (cmake, configure, make, meson, ...)
        configure: Callback receiving the build directory
        build: Callback receiving the same build directory
    """

    name: str
    backend: str
    configure: Callable[[Path], None]
    build: Callable[[Path], None]


class Builder(ABC):
    """
    Base class for package builders.

    Subclasses declare their name, capabilities and host commands as class
    attributes, and implement source_repository() and phases().

    Args:
        context: Inputs for this build
    """

    name: str = ""
    description: str = ""
    capabilities: FrozenSet[Capability] = frozenset(
        {Capability.SOURCE, Capability.FILESYSTEM_OUTPUT, Capability.GIT_REF}
    )
    host_commands: Sequence[str] = ("git",)
    install_prefix: str = "/usr"

    def __init__(self, context: BuildContext):
        for capability in self.capabilities:
            context.require(capability)

        self.context = context
        self.state = BuildState.CREATED
        self.source: Optional[SourceRef] = None
        self.source_directory: Optional[Path] = None
        self.output_directory: Optional[Path] = None
        self.scratch_directory: Optional[Path] = None
        self.recorded_version: Optional[str] = None
        self.verification_result: Optional[VerificationResult] = None

    # ========================================================================
    # Recipe Interface
    # ========================================================================

    @abstractmethod
    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        """Describe the source checkout for this package."""
        pass

    @abstractmethod
    def phases(self) -> List[BuildPhase]:
        """Ordered build phases, called once the source is resolved."""
        pass

    def output_binaries(self) -> List[str]:
        """ELF files, relative to the output directory, checked against the triplet."""
        return []

    def version_check(self) -> Optional[VersionCheck]:
        """Check comparing the built artifact's version with the recorded one."""
        return None

    def host_version_checks(self) -> List[VersionCheck]:
        """Minimum versions required of host tools."""
        return []

    # ========================================================================
    # Context Accessors
    # ========================================================================

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def triplet(self) -> Optional[Triplet]:
        return self.context.triplet

    def layers(self) -> List[ConfigLayer]:
        """Configuration layers derived from this builder's capabilities."""
        layers: List[ConfigLayer] = []
        if self.has(Capability.TOOLCHAIN):
            layers.append(ToolchainLayer(self.context.toolchain))
        if self.has(Capability.ROOT_FS):
            layers.append(SysrootLayer(self.context.root_fs_directory))
        if self.output_directory is not None:
            layers.append(OutputLayer(self.output_directory, self.install_prefix))
        return layers

    def override_layers(self) -> List[ConfigLayer]:
        return [self.context.overrides] if self.context.overrides is not None else []

    def run_runner(self, runner: Runner) -> CommandResult:
        """Run a backend runner with this build's executor and cancellation token."""
        return run(
            runner,
            executor=self.context.executor,
            cancellation=self.context.cancellation,
        )

    def record_version(self, version: str) -> None:
        """Remember the source version reported by the build system."""
        self.recorded_version = version.strip()
        logger.info(f"[{self.name}] Source version {self.recorded_version}")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def check_host_requirements(self) -> None:
        """
        Verify host tools before any source is fetched.

        Raises:
            RequirementMissingError: If a tool is missing or too old
            BuilderStateError: If the builder has already been used
        """
        if self.state is not BuildState.CREATED:
            raise BuilderStateError(f"Host requirements for {self.name} already checked")

        logger.info(f"[{self.name}] Checking host requirements")
        try:
            check_commands(self.host_commands)
            if self.has(Capability.TOOLCHAIN):
                probe_toolchain(
                    self.context.toolchain,
                    executor=self.context.executor,
                    cancellation=self.context.cancellation,
                )
            check_versions(
                self.host_version_checks(),
                executor=self.context.executor,
                cancellation=self.context.cancellation,
            )
        except DistroBuilderError as e:
            self.state = BuildState.FAILED
            e.add_context(package=self.name)
            raise

        self.state = BuildState.HOST_CHECKED

    def build(self) -> None:
        """
        Resolve the source and run every phase in order.

        Raises:
            BuilderStateError: If this builder has already built
            DistroBuilderError: The first failure, tagged with package,
                phase and backend
        """
        if self.state not in (BuildState.CREATED, BuildState.HOST_CHECKED):
            raise BuilderStateError(
                f"Builder for {self.name} has already run; create a new builder"
            )

        try:
            with ExitStack() as stack:
                self.output_directory = self._prepare_output_directory(stack)
                self.scratch_directory = stack.enter_context(
                    temporary_directory(prefix=f"distrobuilder-{self.name}-")
                )
                self._resolve_source(stack)
                self.state = BuildState.SOURCE_RESOLVED

                phases = self.phases()
                for index, phase in enumerate(phases, start=1):
                    self._run_phase(index, len(phases), phase)
        except DistroBuilderError as e:
            self.state = BuildState.FAILED
            e.add_context(package=self.name)
            raise
        except BaseException:
            self.state = BuildState.FAILED
            raise

        self.state = BuildState.BUILT
        logger.info(f"[{self.name}] Build finished, output in {self.output_directory}")

    def verify_build(self) -> VerificationResult:
        """
        Check built binaries against the target and the recorded version.

        Returns:
            VerificationResult of the passed checks

        Raises:
            BuilderStateError: If Build has not completed successfully
            VerificationError: If any check fails
        """
        if self.state is not BuildState.BUILT:
            raise BuilderStateError(
                f"Cannot verify {self.name}: build state is {self.state.value}"
            )

        binaries = [self.output_directory / path for path in self.output_binaries()]
        verifier = BuildVerifier(
            self.triplet if binaries else None,
            executor=self.context.executor,
            cancellation=self.context.cancellation,
        )
        logger.info(f"[{self.name}] Verifying build")
        result = verifier.verify(
            binaries, self.version_check(), expected_version=self.recorded_version
        )
        self.verification_result = result

        if not result.success:
            self.state = BuildState.FAILED
            raise VerificationError(result.detail).add_context(package=self.name)

        self.state = BuildState.VERIFIED
        return result

    def execute(
        self, check_host_requirements_only: bool = False, skip_verification: bool = False
    ) -> Optional[VerificationResult]:
        """
        Run the full lifecycle: host checks, build and verification.

        Args:
            check_host_requirements_only: Stop after the host checks
            skip_verification: Do not run verify_build

        Returns:
            VerificationResult, or None if verification did not run
        """
        start_time = time.monotonic()
        self.check_host_requirements()
        if check_host_requirements_only:
            logger.info(f"[{self.name}] Host requirements satisfied")
            return None

        self.build()

        result = None
        if skip_verification:
            logger.warning(f"[{self.name}] Skipping verification")
        else:
            result = self.verify_build()

        self.state = BuildState.DONE
        logger.info(f"[{self.name}] Completed in {time.monotonic() - start_time:.1f}s")
        return result

    # ========================================================================
    # Internals
    # ========================================================================

    def _prepare_output_directory(self, stack: ExitStack) -> Path:
        if self.context.output_directory is not None:
            output = Path(self.context.output_directory).resolve()
        else:
            output = Path(tempfile.mkdtemp(prefix=f"distrobuilder-{self.name}-output-"))
            logger.info(f"[{self.name}] No output directory given, using {output}")

        stack.enter_context(output_directory_lock(output))
        logger.debug(f"[{self.name}] Clearing output directory {output}")
        clear_directory(output)
        return output

    def _resolve_source(self, stack: ExitStack) -> None:
        ephemeral = self.context.source_directory is None
        if ephemeral:
            path = Path(tempfile.mkdtemp(prefix=f"distrobuilder-{self.name}-source-"))
            stack.callback(self._remove_source_directory, path)
        else:
            path = Path(self.context.source_directory).resolve()

        self.source = self.source_repository(path, self.context.git_ref)
        self.source.ephemeral = ephemeral
        stack.callback(self._cleanup_source, self.source)

        self.source_directory = self.resolve(self.source)

    def resolver(self) -> GitSourceResolver:
        """Source resolver sharing this build's executor and cancellation token."""
        return GitSourceResolver(
            executor=self.context.executor, cancellation=self.context.cancellation
        )

    def resolve(self, source: SourceRef) -> Path:
        return self.resolver().resolve(source)

    def _cleanup_source(self, source: SourceRef) -> None:
        try:
            self.resolver().cleanup(source)
        except FilesystemError as e:
            logger.warning(f"[{self.name}] Failed to remove source {source.local_path}: {e}")

    def _remove_source_directory(self, path: Path) -> None:
        try:
            safe_rmtree(path)
        except FilesystemError as e:
            logger.warning(f"[{self.name}] Failed to remove source {path}: {e}")

    def _run_phase(self, index: int, total: int, phase: BuildPhase) -> None:
        logger.info(
            f"[{self.name}] Phase {index}/{total}: {phase.name} ({phase.backend})"
        )
        start_time = time.monotonic()
        try:
            self.context.cancellation.raise_if_cancelled(f"Phase {phase.name}")
            with temporary_directory(
                prefix=f"build-{index}-", parent=self.scratch_directory
            ) as build_directory:
                phase.configure(build_directory)
                self.state = BuildState.CONFIGURED
                phase.build(build_directory)
                self.state = BuildState.BUILT
        except DistroBuilderError as e:
            e.add_context(phase=phase.name, phase_index=index, backend=phase.backend)
            raise

        logger.info(
            f"[{self.name}] Phase {phase.name} finished in "
            f"{time.monotonic() - start_time:.1f}s"
        )
