"""
Version extraction and comparison.

A version check runs a command, extracts exactly one version string from
its output with a regular expression and applies a comparator. Zero or
several matches are errors: guessing which of two reported versions is the
right one would hide a misconfigured tool.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from packaging.version import InvalidVersion, Version

from distrobuilder.backends.command import CommandRunner
from distrobuilder.backends.process import Executor, run
from distrobuilder.config.option_sets import RunnerOptions
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import VersionExtractionError

logger = logging.getLogger(__name__)

# Semantic version (https://semver.org) as a single capture group
SEMVER = (
    r"((?:0|[1-9]\d*)\.(?:0|[1-9]\d*)\.(?:0|[1-9]\d*)"
    r"(?:-(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*)?"
    r"(?:\+[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*)?)"
)

_SEMVER_RE = re.compile(SEMVER)
_CORE_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)")

OUTPUT_STREAMS = ("stdout", "stderr", "both")


def extract_version(output: str, pattern: str) -> str:
    """
    Extract the single version string matched by a pattern.

    Args:
        output: Command output to search
        pattern: Regular expression; its first capture group (or the whole
            match when it has none) is the version

    Returns:
        The extracted version string

    Raises:
        VersionExtractionError: If the pattern matches zero or several times

    Example:
        >>> extract_version("cmake version 3.27.4", f"cmake version {SEMVER}")
        '3.27.4'
    """
    regex = re.compile(pattern)
    matches = list(regex.finditer(output))

    if not matches:
        raise VersionExtractionError(
            f"No version matching '{pattern}' found in output", output=output
        )
    if len(matches) > 1:
        found = ", ".join(m.group(1) if regex.groups else m.group(0) for m in matches)
        raise VersionExtractionError(
            f"Expected one version matching '{pattern}', found {len(matches)}: {found}",
            output=output,
        )

    match = matches[0]
    return match.group(1) if regex.groups else match.group(0)


def require_semver(text: str) -> str:
    """
    Return text unchanged if it is a semantic version.

    Raises:
        VersionExtractionError: If it is not
    """
    if not _SEMVER_RE.fullmatch(text):
        raise VersionExtractionError(f"'{text}' is not a semantic version")
    return text


def parse_version(text: str) -> Version:
    """
    Parse a semantic version for ordering.

    Build metadata is ignored. Pre-release tags that PEP 440 cannot express
    are dropped, comparing on major.minor.patch only.

    Raises:
        VersionExtractionError: If the text is not a semantic version
    """
    text = require_semver(text).split("+", 1)[0]
    try:
        return Version(text)
    except InvalidVersion:
        core = _CORE_RE.match(text)
        return Version(".".join(core.groups()))


# ============================================================================
# Comparators
# ============================================================================


@dataclass(frozen=True)
class VersionComparator:
    """A named predicate over version strings."""

    description: str
    predicate: Callable[[str], bool]

    def __call__(self, version: str) -> bool:
        return self.predicate(version)


def exact_version(expected: str) -> VersionComparator:
    """
    Accept only a version string identical to ``expected``.

    Pre-release tags and build metadata are part of the comparison.
    """
    return VersionComparator(
        f"== {expected}",
        lambda version: require_semver(version) == require_semver(expected),
    )


def minimum_version(minimum: str) -> VersionComparator:
    """Accept versions greater than or equal to ``minimum``."""
    return VersionComparator(
        f">= {minimum}",
        lambda version: parse_version(version) >= parse_version(minimum),
    )


def valid_version() -> VersionComparator:
    """Accept any syntactically valid semantic version."""
    return VersionComparator(
        "valid semantic version", lambda version: bool(_SEMVER_RE.fullmatch(version))
    )


# ============================================================================
# Version Checks
# ============================================================================


@dataclass
class VersionCheck:
    """
    Run a command and check the version it reports.

    Attributes:
        command: Executable name or path
        arguments: Arguments making the command print its version
        pattern: Regular expression with one capture group for the version
        comparator: Predicate the extracted version must satisfy
        stream: Output searched: 'stdout', 'stderr' or 'both'
        ignore_exit_code: Accept nonzero exit codes (some tools print their
            version and exit 1)
        stdin: Text fed to the command
    """

    command: str
    arguments: Sequence[str] = ("--version",)
    pattern: str = SEMVER
    comparator: VersionComparator = valid_version()
    stream: str = "stdout"
    ignore_exit_code: bool = False
    stdin: Optional[str] = None

    def __post_init__(self):
        if self.stream not in OUTPUT_STREAMS:
            raise ValueError(
                f"Invalid output stream '{self.stream}', expected one of {OUTPUT_STREAMS}"
            )

    def extract(
        self,
        executor: Optional[Executor] = None,
        cancellation: Optional[CancellationToken] = None,
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ) -> str:
        """
        Run the command and extract its version.

        Raises:
            CommandError: If the command fails (unless ignore_exit_code)
            VersionExtractionError: If the output does not hold exactly one version
        """
        runner = CommandRunner(
            self.command,
            self.arguments,
            runner_options=runner_options,
            stdin=self.stdin,
        )
        result = run(
            runner,
            executor=executor,
            cancellation=cancellation,
            check=not self.ignore_exit_code,
        )

        if self.stream == "stdout":
            output = result.stdout
        elif self.stream == "stderr":
            output = result.stderr
        else:
            output = result.stdout + result.stderr

        version = extract_version(output, self.pattern)
        logger.debug(f"{self.command} reports version {version}")
        return version
