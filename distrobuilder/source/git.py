"""
Git source resolver.

Turns a (repository URL, ref) pair into a pinned, shallow worktree without
cloning full history:

1. Reuse a non-empty directory only if it is a repository with a remote
   fetching from the same URL; otherwise initialise a new repository.
2. Fetch exactly the requested ref at depth 1 with a refspec chosen by
   the ref kind.
3. Resolve the ref to a commit, dereferencing annotated tag chains.
4. Force-checkout the commit and initialise submodules at depth 1.

All git operations go through the git command line and the shared process
runner, so they honour the build's cancellation token and deadline.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from distrobuilder.backends.command import CommandRunner
from distrobuilder.backends.process import Executor, run
from distrobuilder.config.option_sets import RunnerOptions
from distrobuilder.config.options import StringValue
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import (
    CommandCancelledError,
    CommandError,
    FilesystemError,
    RefNotFoundError,
    RepositoryMismatchError,
    SourceAcquisitionError,
    TransportError,
    UnsupportedRefKindError,
)
from distrobuilder.core.filesystem import safe_rmtree
from distrobuilder.source.remote import RemoteCapabilityProbe

logger = logging.getLogger(__name__)

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{40}$")
ABBREVIATED_COMMIT_PATTERN = re.compile(r"^[0-9a-fA-F]{4,39}$")

DEFAULT_REMOTE = "origin"

# git fetch stderr fragments meaning the ref or object does not exist
_MISSING_REF_MARKERS = (
    "couldn't find remote ref",
    "no such remote ref",
    "not our ref",
    "unadvertised object",
    "remote ref does not exist",
)

# Never block on credential prompts
GIT_ENVIRONMENT = RunnerOptions(
    environment={"GIT_TERMINAL_PROMPT": StringValue("0")}
)


# ============================================================================
# References
# ============================================================================


class RefKind(Enum):
    """Kinds of git references the resolver can pin."""

    HEAD = "head"
    BRANCH = "branch"
    TAG = "tag"
    COMMIT = "commit"


@dataclass(frozen=True)
class GitRef:
    """
    A classified git reference.

    Attributes:
        name: Reference as given (e.g., 'refs/tags/v1.5.5')
        kind: Reference kind
        short_name: Branch or tag name, or the commit id
    """

    name: str
    kind: RefKind
    short_name: str

    @classmethod
    def parse(cls, ref: str) -> "GitRef":
        """
        Classify a reference string.

        Accepts ``HEAD``, ``refs/heads/<branch>``, ``refs/tags/<tag>`` and
        full 40-character commit ids.

        Raises:
            UnsupportedRefKindError: For abbreviated ids and other refs
        """
        if ref == "HEAD":
            return cls(ref, RefKind.HEAD, "HEAD")
        if ref.startswith("refs/heads/") and len(ref) > len("refs/heads/"):
            return cls(ref, RefKind.BRANCH, ref[len("refs/heads/") :])
        if ref.startswith("refs/tags/") and len(ref) > len("refs/tags/"):
            return cls(ref, RefKind.TAG, ref[len("refs/tags/") :])
        if COMMIT_PATTERN.match(ref.lower()):
            commit = ref.lower()
            return cls(commit, RefKind.COMMIT, commit)
        if ABBREVIATED_COMMIT_PATTERN.match(ref):
            raise UnsupportedRefKindError(
                f"Abbreviated commit id '{ref}' cannot be fetched; use the full 40-character id"
            )
        raise UnsupportedRefKindError(
            f"Unsupported reference '{ref}': expected HEAD, refs/heads/*, refs/tags/* or a commit id"
        )

    def refspec(self, remote: str = DEFAULT_REMOTE) -> str:
        """Force-update refspec fetching this ref into its local ref."""
        if self.kind is RefKind.HEAD:
            return f"+HEAD:{self.local_ref(remote)}"
        return f"+{self.name}:{self.local_ref(remote)}"

    def local_ref(self, remote: str = DEFAULT_REMOTE) -> str:
        """Local ref the fetch stores this ref under."""
        if self.kind is RefKind.TAG:
            return f"refs/tags/{self.short_name}"
        return f"refs/remotes/{remote}/{self.short_name}"


def fallback_refspec(remote: str = DEFAULT_REMOTE) -> str:
    """Refspec fetching every branch head, for servers refusing exact commits."""
    return f"+refs/heads/*:refs/remotes/{remote}/*"


@dataclass
class SourceRef:
    """
    A source tree to acquire.

    Attributes:
        repository_url: Remote repository URL
        ref: Reference to pin (HEAD, branch, tag or commit id)
        local_path: Worktree location
        ephemeral: Whether the worktree is deleted once the build ends
        commit: Commit the worktree was checked out at, set by resolution
    """

    repository_url: str
    ref: str = "HEAD"
    local_path: Optional[Path] = None
    ephemeral: bool = False
    commit: Optional[str] = None


# ============================================================================
# Resolver
# ============================================================================


class GitSourceResolver:
    """
    Acquire pinned, shallow source trees.

    Args:
        executor: Process executor used for git commands
        cancellation: Token threaded into every git command and probe
        capability_probe: Probe deciding whether exact commit fetches work
        git: git executable
    """

    def __init__(
        self,
        executor: Optional[Executor] = None,
        cancellation: Optional[CancellationToken] = None,
        capability_probe: Optional[RemoteCapabilityProbe] = None,
        git: str = "git",
    ):
        self.executor = executor
        self.cancellation = cancellation
        self.git = git
        self.capability_probe = capability_probe or RemoteCapabilityProbe(
            executor=executor, cancellation=cancellation, git=git
        )

    def resolve(self, source: SourceRef) -> Path:
        """
        Materialise a source tree at the commit its ref denotes.

        Args:
            source: Source to acquire; ``commit`` is set on success

        Returns:
            Path of the checked-out worktree

        Raises:
            RepositoryMismatchError: If the existing directory belongs to
                another repository
            RefNotFoundError: If the ref does not exist on the remote
            UnsupportedRefKindError: If the ref cannot be resolved to a commit
            TransportError: If the remote cannot be reached
        """
        if source.local_path is None:
            raise SourceAcquisitionError("Source has no local path to check out into")

        ref = GitRef.parse(source.ref)
        path = Path(source.local_path)
        logger.info(f"Resolving {source.repository_url} at {source.ref} into {path}")

        if path.is_dir() and any(path.iterdir()):
            remote = self._open_existing(path, source.repository_url)
        else:
            remote = self._initialize(path, source.repository_url)

        refspec = ref.refspec(remote)
        if ref.kind is RefKind.COMMIT and not self.capability_probe.supports_exact_sha_fetch(
            source.repository_url
        ):
            logger.info(
                f"{source.repository_url} does not allow fetching commits by id, "
                "fetching all branches instead"
            )
            refspec = fallback_refspec(remote)

        self._fetch(path, remote, refspec, ref, source.repository_url)
        commit = self._resolve_commit(path, ref, remote, source.repository_url)
        self._checkout(path, ref, commit)
        self._git(["submodule", "update", "--init", "--recursive", "--depth", "1"], path)

        source.commit = commit
        logger.info(f"Checked out {source.ref} at {commit}")
        return path

    def cleanup(self, source: SourceRef) -> None:
        """
        Delete an ephemeral worktree. User-supplied paths are kept.

        Raises:
            FilesystemError: If the directory cannot be removed
        """
        if source.ephemeral and source.local_path is not None:
            logger.debug(f"Removing ephemeral source {source.local_path}")
            safe_rmtree(source.local_path)

    # ------------------------------------------------------------------------
    # git plumbing
    # ------------------------------------------------------------------------

    def _git(self, args: List[str], cwd: Path, check: bool = True):
        runner = CommandRunner(
            self.git,
            args,
            working_directory=cwd,
            runner_options=[GIT_ENVIRONMENT],
            name="git",
        )
        try:
            return run(
                runner, executor=self.executor, cancellation=self.cancellation, check=check
            )
        except CommandCancelledError:
            raise
        except CommandError as e:
            raise SourceAcquisitionError(f"git {args[0]} failed in {cwd}: {e}") from e

    def _remote_urls(self, path: Path) -> Dict[str, str]:
        result = self._git(
            ["config", "--get-regexp", r"^remote\..*\.url$"], path, check=False
        )
        urls: Dict[str, str] = {}
        for line in result.stdout.splitlines():
            key, _, url = line.strip().partition(" ")
            if not key.startswith("remote.") or not key.endswith(".url"):
                continue
            name = key[len("remote.") : -len(".url")]
            # The first configured URL is the one git fetches from
            urls.setdefault(name, url.strip())
        return urls

    def _open_existing(self, path: Path, repository_url: str) -> str:
        if not (path / ".git").exists():
            raise RepositoryMismatchError(path, repository_url)

        for name, url in self._remote_urls(path).items():
            if url == repository_url:
                logger.debug(f"Reusing {path} with remote '{name}'")
                return name
        raise RepositoryMismatchError(path, repository_url)

    def _initialize(self, path: Path, repository_url: str) -> str:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create source directory {path}: {e}") from e

        self._git(["init", "--quiet"], path)
        self._git(["remote", "add", DEFAULT_REMOTE, repository_url], path)
        return DEFAULT_REMOTE

    def _fetch(
        self, path: Path, remote: str, refspec: str, ref: GitRef, repository_url: str
    ) -> None:
        runner = CommandRunner(
            self.git,
            ["fetch", "--depth=1", "--no-tags", remote, refspec],
            working_directory=path,
            runner_options=[GIT_ENVIRONMENT],
            name="git",
        )
        try:
            run(runner, executor=self.executor, cancellation=self.cancellation)
        except CommandCancelledError:
            raise
        except CommandError as e:
            stderr = e.stderr.lower()
            if any(marker in stderr for marker in _MISSING_REF_MARKERS):
                raise RefNotFoundError(ref.name, repository_url, e.stderr.strip()) from e
            raise TransportError(
                f"Failed to fetch {refspec} from {repository_url}: {e}"
            ) from e

    def _object_type(self, path: Path, oid: str) -> Optional[str]:
        result = self._git(["cat-file", "-t", oid], path, check=False)
        if not result.succeeded:
            return None
        return result.stdout.strip()

    def _resolve_commit(
        self, path: Path, ref: GitRef, remote: str, repository_url: str
    ) -> str:
        if ref.kind is RefKind.COMMIT:
            object_type = self._object_type(path, ref.short_name)
            if object_type is None:
                raise RefNotFoundError(
                    ref.name, repository_url, "commit not present after fetch"
                )
            if object_type != "commit":
                raise UnsupportedRefKindError(
                    f"{ref.name} is a {object_type}, not a commit"
                )
            return ref.short_name

        local_ref = ref.local_ref(remote)
        result = self._git(["rev-parse", "--verify", "--quiet", local_ref], path, check=False)
        oid = result.stdout.strip()
        if not result.succeeded or not oid:
            raise RefNotFoundError(ref.name, repository_url, f"{local_ref} missing after fetch")

        # Follow tag objects until a commit; lightweight tags and branches
        # point at the commit directly.
        while True:
            object_type = self._object_type(path, oid)
            if object_type == "commit":
                return oid
            if object_type != "tag":
                raise UnsupportedRefKindError(
                    f"{ref.name} resolves to a {object_type or 'missing object'} "
                    f"({oid}), not a commit"
                )
            oid = self._tag_target(path, oid)

    def _tag_target(self, path: Path, oid: str) -> str:
        content = self._git(["cat-file", "tag", oid], path).stdout
        for line in content.splitlines():
            if line.startswith("object "):
                return line.split()[1]
            if not line:
                break
        raise UnsupportedRefKindError(f"Tag object {oid} has no target")

    def _checkout(self, path: Path, ref: GitRef, commit: str) -> None:
        if ref.kind is RefKind.BRANCH:
            args = ["checkout", "--quiet", "--force", "-B", ref.short_name, commit]
        else:
            args = ["checkout", "--quiet", "--force", "--detach", commit]
        self._git(args, path)
