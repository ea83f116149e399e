"""
Core functionality for distrobuilder.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    DistroBuilderError,
    FilesystemError,
    ConfigurationError,
    InvalidTripletError,
    RequirementMissingError,
    VersionExtractionError,
    SourceAcquisitionError,
    RepositoryMismatchError,
    RefNotFoundError,
    UnsupportedRefKindError,
    TransportError,
    CommandError,
    CommandCancelledError,
    UnmergeableOptionError,
    BuilderStateError,
    OutputLockedError,
    VerificationError,
)

__all__ = [
    "DistroBuilderError",
    "FilesystemError",
    "ConfigurationError",
    "InvalidTripletError",
    "RequirementMissingError",
    "VersionExtractionError",
    "SourceAcquisitionError",
    "RepositoryMismatchError",
    "RefNotFoundError",
    "UnsupportedRefKindError",
    "TransportError",
    "CommandError",
    "CommandCancelledError",
    "UnmergeableOptionError",
    "BuilderStateError",
    "OutputLockedError",
    "VerificationError",
]
