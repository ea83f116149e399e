"""
Source acquisition: pinned, shallow git checkouts.
"""

from .git import GitRef, GitSourceResolver, RefKind, SourceRef
from .remote import RemoteCapabilityProbe
from .repositories import REPOSITORIES, Repository

__all__ = [
    "GitRef",
    "GitSourceResolver",
    "RefKind",
    "SourceRef",
    "RemoteCapabilityProbe",
    "REPOSITORIES",
    "Repository",
]
