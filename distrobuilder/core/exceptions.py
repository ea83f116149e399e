"""
Centralized exception hierarchy for distrobuilder.

Every error raised by the build engine derives from DistroBuilderError and
carries a ``context`` dictionary that is filled in while the error travels up
through the orchestrator (package, phase, backend, ...). Adding context never
changes the exception type, so callers can still match on the failure class.
"""

from typing import Any, Dict, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class DistroBuilderError(Exception):
    """Base exception for all distrobuilder errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def add_context(self, **context: Any) -> "DistroBuilderError":
        """
        Attach identifying context without overwriting what is already set.

        Inner layers know more precise identity (e.g. the exact phase) than
        outer ones, so the first value recorded for a key wins.

        Returns:
            The same exception, to allow ``raise error.add_context(...)``
        """
        for key, value in context.items():
            if value is not None:
                self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"[{details}] {self.message}"


class FilesystemError(DistroBuilderError):
    """Raised when a filesystem helper cannot complete."""

    pass


class ConfigurationError(DistroBuilderError):
    """Raised for invalid project configuration or missing build inputs."""

    pass


class InvalidTripletError(DistroBuilderError, ValueError):
    """Raised when a target triplet string cannot be parsed."""

    pass


# ============================================================================
# Host Requirement Exceptions
# ============================================================================


class RequirementMissingError(DistroBuilderError):
    """Raised when a host tool is absent or below its minimum version."""

    pass


class VersionExtractionError(DistroBuilderError):
    """Raised when a command's output holds zero or several version strings."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


# ============================================================================
# Source Acquisition Exceptions
# ============================================================================


class SourceAcquisitionError(DistroBuilderError):
    """Base exception for failures while acquiring a source tree."""

    pass


class RepositoryMismatchError(SourceAcquisitionError):
    """Raised when a pre-existing checkout belongs to another repository."""

    def __init__(self, path, repository_url: str):
        self.path = path
        self.repository_url = repository_url
        super().__init__(
            f"Directory {path} has no remote fetching from {repository_url}"
        )


class RefNotFoundError(SourceAcquisitionError):
    """Raised when a git reference does not exist on the remote."""

    def __init__(self, ref: str, repository_url: str, reason: str = ""):
        self.ref = ref
        self.repository_url = repository_url
        msg = f"Reference {ref} not found in {repository_url}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnsupportedRefKindError(SourceAcquisitionError):
    """Raised when a reference cannot be resolved to a commit."""

    pass


class TransportError(SourceAcquisitionError):
    """Raised when talking to a remote repository fails."""

    pass


# ============================================================================
# Command Execution Exceptions
# ============================================================================


class CommandError(DistroBuilderError):
    """
    Raised when an external command fails to start or exits nonzero.

    Attributes:
        invocation: The Invocation that was executed
        exit_code: Process exit code, None if the process never started
        stdout: Captured standard output
        stderr: Captured standard error
    """

    STDERR_TAIL_LINES = 20

    def __init__(
        self,
        message: str,
        invocation=None,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.invocation = invocation
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    def __str__(self) -> str:
        text = super().__str__()
        tail = self.stderr.strip().splitlines()[-self.STDERR_TAIL_LINES :]
        if tail:
            text += "\n" + "\n".join(f"  stderr: {line}" for line in tail)
        return text


class CommandCancelledError(CommandError):
    """Raised when a running command is killed by cancellation or timeout."""

    pass


# ============================================================================
# Configuration Merge Exceptions
# ============================================================================


class UnmergeableOptionError(DistroBuilderError):
    """Raised when two option sets define the same non-mergeable key."""

    def __init__(self, key: str, left, right):
        self.key = key
        self.left = left
        self.right = right
        super().__init__(
            f"Option {key} is defined more than once and cannot be merged "
            f"({left!r} vs {right!r})"
        )


# ============================================================================
# Builder Exceptions
# ============================================================================


class BuilderStateError(DistroBuilderError):
    """Raised when a builder operation is invoked in the wrong state."""

    pass


class OutputLockedError(DistroBuilderError):
    """Raised when another build holds the output directory lock."""

    pass


class VerificationError(DistroBuilderError):
    """Raised when a built artifact does not match its target or version."""

    pass
