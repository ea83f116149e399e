"""
Upstream source repositories and their default pinned references.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from distrobuilder.source.git import SourceRef


@dataclass(frozen=True)
class Repository:
    """An upstream git repository with the reference built by default."""

    name: str
    url: str
    default_ref: str

    def source(self, local_path: Optional[Path], ref: Optional[str] = None) -> SourceRef:
        """
        Describe a checkout of this repository.

        Args:
            local_path: Worktree location
            ref: Reference to pin (default: the repository's default ref)
        """
        return SourceRef(
            repository_url=self.url,
            ref=ref or self.default_ref,
            local_path=Path(local_path) if local_path is not None else None,
        )


BZIP2 = Repository(
    "bzip2",
    "https://gitlab.com/bzip2/bzip2.git",
    # master branch commit with CMake support, no release carries it yet
    "66c46b8c9436613fd81bc5d03f63a61933a4dcc3",
)
LIBFUSE = Repository(
    "libfuse", "https://github.com/libfuse/libfuse.git", "refs/tags/fuse-3.16.2"
)
LINUX = Repository(
    "linux",
    "git://git.kernel.org/pub/scm/linux/kernel/git/torvalds/linux.git",
    "refs/tags/v6.5",
)
LLVM = Repository(
    "llvm", "https://github.com/llvm/llvm-project.git", "refs/tags/llvmorg-16.0.6"
)
LZ4 = Repository("lz4", "https://github.com/lz4/lz4.git", "refs/tags/v1.9.4")
MUSL = Repository("musl", "git://git.musl-libc.org/musl", "refs/tags/v1.2.4")
PCRE2 = Repository(
    "pcre2", "https://github.com/PCRE2Project/pcre2.git", "refs/tags/pcre2-10.42"
)
XZ = Repository("xz", "https://github.com/tukaani-project/xz.git", "refs/tags/v5.4.4")
ZLIB_NG = Repository(
    "zlib-ng", "https://github.com/zlib-ng/zlib-ng.git", "refs/tags/2.1.3"
)
ZSTD = Repository("zstd", "https://github.com/facebook/zstd.git", "refs/tags/v1.5.5")

REPOSITORIES: Dict[str, Repository] = {
    repository.name: repository
    for repository in (BZIP2, LIBFUSE, LINUX, LLVM, LZ4, MUSL, PCRE2, XZ, ZLIB_NG, ZSTD)
}
