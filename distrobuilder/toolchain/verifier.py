"""
Post-build verification.

After a successful build, every produced binary is inspected to prove it
was compiled for the target triplet (ELF machine and dynamic loader), and a
version-reporting artifact is run to prove the build came from the pinned
source version.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from distrobuilder.backends.process import Executor
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import (
    CommandError,
    VerificationError,
    VersionExtractionError,
)
from distrobuilder.cross.triplet import Triplet
from distrobuilder.toolchain.elf import read_elf
from distrobuilder.toolchain.versions import VersionCheck, VersionComparator

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Result of a single verification check."""

    name: str
    passed: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VerificationResult:
    """Result of verifying one build's artifacts."""

    expected_triplet: Optional[str] = None
    expected_version: Optional[str] = None
    success: bool = True
    checks_passed: List[str] = field(default_factory=list)
    checks_failed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    verification_time: float = 0.0

    def add_check(self, result: CheckResult):
        """
        Add check result to verification.

        Args:
            result: CheckResult to add
        """
        if result.passed:
            self.checks_passed.append(result.name)
        else:
            self.checks_failed.append(result.name)
            self.errors.append(f"{result.name}: {result.message}")
            self.success = False

    @property
    def detail(self) -> str:
        if self.success:
            return f"{len(self.checks_passed)} check(s) passed"
        return "; ".join(self.errors)


# ============================================================================
# Individual Checks
# ============================================================================


def verify_triplet(path: Path, triplet: Triplet) -> None:
    """
    Verify that an ELF file targets a triplet.

    The machine field must match the triplet's machine. If the image has a
    PT_INTERP segment, it must name the triplet's dynamic loader under
    /lib or /usr/lib; images without one are statically linked and pass.

    Args:
        path: ELF file to inspect
        triplet: Expected target

    Raises:
        VerificationError: On any mismatch or unreadable file
    """
    image = read_elf(path)

    if not image.matches_machine(triplet.machine):
        raise VerificationError(
            f"{path} is built for {image.machine_name}, expected {triplet.machine}"
        )

    if image.interpreter is not None:
        expected = triplet.dynamic_loader_paths
        if image.interpreter not in expected:
            raise VerificationError(
                f"{path} requests interpreter {image.interpreter}, "
                f"expected one of {', '.join(expected)}"
            )


def verify_version(
    command_path: Path,
    arguments: Sequence[str],
    pattern: str,
    comparator: VersionComparator,
    stream: str = "stdout",
    ignore_exit_code: bool = False,
    stdin: Optional[str] = None,
    executor: Optional[Executor] = None,
    cancellation: Optional[CancellationToken] = None,
) -> str:
    """
    Run a built artifact and check the version it reports.

    Returns:
        The extracted version

    Raises:
        VerificationError: If the command fails, reports zero or several
            versions, or reports a version the comparator rejects
    """
    check = VersionCheck(
        command=str(command_path),
        arguments=arguments,
        pattern=pattern,
        comparator=comparator,
        stream=stream,
        ignore_exit_code=ignore_exit_code,
        stdin=stdin,
    )
    return run_version_check(check, executor=executor, cancellation=cancellation)


def run_version_check(
    check: VersionCheck,
    executor: Optional[Executor] = None,
    cancellation: Optional[CancellationToken] = None,
) -> str:
    """Run a VersionCheck, raising VerificationError on any failure."""
    try:
        version = check.extract(executor=executor, cancellation=cancellation)
    except (CommandError, VersionExtractionError) as e:
        raise VerificationError(
            f"Could not extract version from {check.command}: {e}"
        ) from e

    try:
        accepted = check.comparator(version)
    except VersionExtractionError as e:
        raise VerificationError(f"Cannot compare version {version}: {e}") from e
    if not accepted:
        raise VerificationError(
            f"{check.command} reports version {version}, "
            f"expected {check.comparator.description}"
        )
    return version


# ============================================================================
# Build Verifier
# ============================================================================


class BuildVerifier:
    """
    Run all verification checks for one build.

    Example:
        >>> verifier = BuildVerifier(Triplet.parse("x86_64-pc-linux-musl"))
        >>> result = verifier.verify([Path("out/usr/bin/zstd")])
        >>> result.success
        True
    """

    def __init__(
        self,
        triplet: Optional[Triplet] = None,
        executor: Optional[Executor] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.triplet = triplet
        self.executor = executor
        self.cancellation = cancellation

    def check_triplet(self, path: Path) -> CheckResult:
        name = f"triplet:{path.name}"
        try:
            verify_triplet(path, self.triplet)
        except VerificationError as e:
            return CheckResult(name=name, passed=False, message=str(e))
        return CheckResult(
            name=name, passed=True, message=f"{path} targets {self.triplet}"
        )

    def check_version(self, check: VersionCheck) -> CheckResult:
        name = f"version:{Path(check.command).name}"
        try:
            version = run_version_check(check, self.executor, self.cancellation)
        except VerificationError as e:
            return CheckResult(name=name, passed=False, message=str(e))
        return CheckResult(
            name=name,
            passed=True,
            message=f"version {version} ({check.comparator.description})",
            details={"version": version},
        )

    def verify(
        self,
        binaries: Sequence[Path] = (),
        version_check: Optional[VersionCheck] = None,
        expected_version: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify binaries and, optionally, the reported version.

        Args:
            binaries: ELF files checked against the triplet
            version_check: Version check run after the triplet checks
            expected_version: Version recorded during the build (reporting only)

        Returns:
            VerificationResult with one entry per check
        """
        start_time = time.time()
        result = VerificationResult(
            expected_triplet=str(self.triplet) if self.triplet else None,
            expected_version=expected_version,
        )

        checks: List[CheckResult] = []
        if self.triplet is not None:
            checks.extend(self.check_triplet(Path(path)) for path in binaries)
        if version_check is not None:
            checks.append(self.check_version(version_check))

        for check_result in checks:
            result.add_check(check_result)
            if check_result.passed:
                logger.info(f"  ✓ {check_result.name}: {check_result.message}")
            else:
                logger.error(f"  ✗ {check_result.name}: {check_result.message}")

        result.verification_time = time.time() - start_time
        if result.success:
            logger.info(f"✓ Verification passed ({result.verification_time:.2f}s)")
        else:
            logger.error(f"✗ Verification failed ({result.verification_time:.2f}s)")
        return result
