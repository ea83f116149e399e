"""
Pytest configuration and shared fixtures for distrobuilder tests.
"""

import os
import shutil
import struct
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Generator, Optional

import pytest

from distrobuilder.build.registry import reset_global_registry


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture(autouse=True)
def fresh_registry():
    """Give every test its own global recipe registry."""
    reset_global_registry()
    yield
    reset_global_registry()


@pytest.fixture
def mock_llvm_toolchain(tmp_path) -> Path:
    """
    Create mock cross toolchain installation.

    Creates ``usr/bin`` with clang, clang++ and ld.lld shell scripts. clang
    answers ``--version`` and ``-dumpmachine`` like a real x86_64 musl
    cross compiler.

    Returns:
        Path to toolchain root directory

    Example:
        def test_probe(mock_llvm_toolchain):
            assert (mock_llvm_toolchain / "usr" / "bin" / "clang").exists()
    """
    toolchain_root = tmp_path / "cross-toolchain"
    bin_dir = toolchain_root / "usr" / "bin"
    bin_dir.mkdir(parents=True)

    clang = (
        "#!/bin/sh\n"
        'case "$1" in\n'
        '  --version) echo "distrobuilder clang version 16.0.6"; '
        'echo "Target: x86_64-pc-linux-musl" ;;\n'
        "  -dumpmachine) echo x86_64-pc-linux-musl ;;\n"
        "  *) exit 0 ;;\n"
        "esac\n"
    )
    for executable in ("clang", "clang++"):
        path = bin_dir / executable
        path.write_text(clang)
        path.chmod(0o755)

    linker = bin_dir / "ld.lld"
    linker.write_text('#!/bin/sh\necho "LLD 16.0.6 (compatible with GNU linkers)"\n')
    linker.chmod(0o755)

    return toolchain_root


# ============================================================================
# Git Fixtures
# ============================================================================

GIT_TEST_ENVIRONMENT = {
    "GIT_AUTHOR_NAME": "Test Author",
    "GIT_AUTHOR_EMAIL": "author@example.com",
    "GIT_COMMITTER_NAME": "Test Author",
    "GIT_COMMITTER_EMAIL": "author@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git(*args, cwd: Path) -> str:
    """Run git in a directory and return its stdout."""
    env = dict(os.environ)
    env.update(GIT_TEST_ENVIRONMENT)
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_available():
    """Skip the test if git is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")


@dataclass
class LocalRepository:
    """A throwaway upstream repository with known commits and refs."""

    path: Path
    commits: Dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def allow_reachable_sha1_in_want(self) -> None:
        git("config", "uploadpack.allowReachableSHA1InWant", "true", cwd=self.path)


@pytest.fixture
def local_git_repository(tmp_path, git_available) -> LocalRepository:
    """
    Create an upstream repository served over file://.

    History on ``main``: ``first`` <- ``second`` <- ``third`` (HEAD).
    Branch ``feature`` adds ``feature`` on top of ``first``.

    Refs:
        refs/tags/v1.0.0      lightweight tag on ``first``
        refs/tags/v2.0.0      annotated tag on ``second``
        refs/tags/nested      annotated tag pointing at the v2.0.0 tag object
        refs/heads/feature    branch head at ``feature``
    """
    path = tmp_path / "upstream"
    path.mkdir()
    repo = LocalRepository(path=path)

    git("init", "-q", cwd=path)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=path)

    def commit(name: str) -> str:
        (path / f"{name}.txt").write_text(f"{name}\n")
        git("add", f"{name}.txt", cwd=path)
        git("commit", "-q", "-m", name, cwd=path)
        repo.commits[name] = git("rev-parse", "HEAD", cwd=path)
        return repo.commits[name]

    commit("first")
    git("tag", "v1.0.0", cwd=path)
    commit("second")
    git("tag", "-a", "v2.0.0", "-m", "release 2.0.0", cwd=path)
    git("tag", "-a", "nested", "-m", "tag of a tag", "v2.0.0", cwd=path)
    commit("third")

    git("checkout", "-q", "-b", "feature", repo.commits["first"], cwd=path)
    commit("feature")
    git("checkout", "-q", "main", cwd=path)

    return repo


@pytest.fixture
def run_git(git_available):
    """Function running git commands in a directory."""
    return git


# ============================================================================
# ELF Fixtures
# ============================================================================

EM_X86_64 = 62
PT_LOAD = 1
PT_INTERP = 3


def build_elf64(
    machine: int = EM_X86_64, interpreter: Optional[str] = None, big_endian: bool = False
) -> bytes:
    """Build a minimal 64-bit ELF image with an optional PT_INTERP segment."""
    e = ">" if big_endian else "<"
    ident = b"\x7fELF" + bytes([2, 2 if big_endian else 1, 1]) + bytes(9)
    phdrs = [(PT_LOAD, 5, 0, 0, 0, 0, 0, 0x1000)]
    payload = b""
    if interpreter is not None:
        payload = interpreter.encode() + b"\0"
        offset = 64 + 2 * 56
        phdrs.insert(0, (PT_INTERP, 4, offset, 0, 0, len(payload), len(payload), 1))
    header = struct.pack(
        e + "HHIQQQIHHHHHH", 2, machine, 1, 0, 64, 0, 0, 64, 56, len(phdrs), 64, 0, 0
    )
    body = b"".join(struct.pack(e + "IIQQQQQQ", *p) for p in phdrs)
    return ident + header + body + payload


@pytest.fixture
def elf64():
    """
    Factory for synthetic 64-bit ELF images.

    Example:
        def test_static(elf64):
            data = elf64(62)  # EM_X86_64, no PT_INTERP
    """
    return build_elf64
