"""
Shared utilities for CLI commands.

Argument types validating flag values at parse time, and error reporting
used by every command.
"""

import argparse
import logging
import re
from pathlib import Path

from distrobuilder.core.exceptions import CommandError, InvalidTripletError
from distrobuilder.cross.triplet import Triplet
from distrobuilder.source.git import ABBREVIATED_COMMIT_PATTERN

logger = logging.getLogger(__name__)

# HEAD, a full commit id, or a fully qualified ref
GIT_REF_PATTERN = re.compile(r"^(HEAD|[0-9a-fA-F]{40}|refs/\S+)$")


# ============================================================================
# Argument Types
# ============================================================================


def existing_directory(value: str) -> Path:
    """
    argparse type accepting only existing directories.

    Raises:
        argparse.ArgumentTypeError: If the path is not a directory
    """
    path = Path(value).expanduser()
    if not path.is_dir():
        raise argparse.ArgumentTypeError(f"directory does not exist: {value}")
    return path.resolve()


def git_ref(value: str) -> str:
    """
    argparse type for git references.

    Accepts HEAD, a full 40-character commit id, or a ``refs/`` name.

    Raises:
        argparse.ArgumentTypeError: For anything else
    """
    if ABBREVIATED_COMMIT_PATTERN.match(value):
        raise argparse.ArgumentTypeError(
            f"Abbreviated commit id '{value}' cannot be fetched; use the full 40-character id"
        )
    if not GIT_REF_PATTERN.match(value):
        raise argparse.ArgumentTypeError(
            f"invalid git ref '{value}': expected HEAD, a commit id or a refs/ name"
        )
    return value


def target_triplet(value: str) -> Triplet:
    """argparse type parsing a target triplet."""
    try:
        return Triplet.parse(value)
    except InvalidTripletError as e:
        raise argparse.ArgumentTypeError(e.message) from e


def positive_seconds(value: str) -> float:
    """argparse type for a positive duration in seconds."""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return seconds


# ============================================================================
# Error Reporting
# ============================================================================


def log_error(error: BaseException, verbose: bool = False) -> None:
    """
    Log an error, its context and, when verbose, its cause chain.

    Args:
        error: Error to report
        verbose: Also log every ``__cause__`` in the chain
    """
    logger.error(f"Error: {error}")
    if not verbose:
        return

    if isinstance(error, CommandError) and error.stdout:
        logger.debug(f"Command output:\n{error.stdout}")

    cause = error.__cause__
    while cause is not None:
        logger.error(f"  caused by: {type(cause).__name__}: {cause}")
        cause = cause.__cause__
