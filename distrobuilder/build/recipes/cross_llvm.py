"""
LLVM/clang cross compiler.

Produces a clang toolchain running on the build host that targets a musl
triplet by default. The musl headers are installed into a sysroot next to
the compiler first, so the runtimes (compiler-rt, libc++, libunwind) can be
built for the target.

Output layout:
    <output>/bin/clang, <output>/bin/ld.lld, ...
    <output>/sysroot/usr/include/...
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from distrobuilder.backends import MakeRunner, read_cmake_cache, recommended_parallel_link_jobs
from distrobuilder.build.builder import BuildPhase
from distrobuilder.build.context import Capability
from distrobuilder.build.standard import StandardBuilder
from distrobuilder.config.option_sets import CMakeOptions, MakeOptions
from distrobuilder.config.options import FORCE_ON, OFF, ON, StringValue, separated
from distrobuilder.core.exceptions import FilesystemError, VersionExtractionError
from distrobuilder.source.git import SourceRef
from distrobuilder.source.repositories import LLVM, MUSL
from distrobuilder.toolchain.versions import (
    SEMVER,
    VersionCheck,
    exact_version,
    minimum_version,
)

logger = logging.getLogger(__name__)

VENDOR = "distrobuilder"

# LLVM backend names by triplet machine
LLVM_TARGETS: Dict[str, str] = {
    "x86_64": "X86",
    "i386": "X86",
    "i486": "X86",
    "i586": "X86",
    "i686": "X86",
    "aarch64": "AArch64",
    "arm": "ARM",
    "armv7": "ARM",
    "riscv64": "RISCV",
    "powerpc64": "PowerPC",
    "powerpc64le": "PowerPC",
    "s390x": "SystemZ",
    "mips": "Mips",
    "mips64": "Mips",
}

VERSION_CACHE_KEYS = (
    "CMAKE_PROJECT_VERSION_MAJOR",
    "CMAKE_PROJECT_VERSION_MINOR",
    "CMAKE_PROJECT_VERSION_PATCH",
)


def llvm_target(machine: str) -> str:
    """
    Get the LLVM backend name for a triplet machine.

    Example:
        >>> llvm_target("aarch64")
        'AArch64'
    """
    return LLVM_TARGETS.get(machine, machine.upper())


class CrossLLVMBuilder(StandardBuilder):
    """Build a clang cross compiler for the target triplet."""

    name = "cross-llvm"
    description = "LLVM/clang cross compiler targeting a musl triplet"
    capabilities = frozenset(
        {
            Capability.SOURCE,
            Capability.FILESYSTEM_OUTPUT,
            Capability.GIT_REF,
            Capability.TARGET_TRIPLET,
        }
    )
    backend = "cmake"
    install_prefix = "/"
    host_commands = (
        "git",
        "cmake",
        "ninja",
        "make",
        "python3",
        "clang",
        "clang++",
        "ar",
        "ranlib",
    )
    musl_source: Optional[SourceRef] = None

    def source_repository(self, path: Path, ref: Optional[str]) -> SourceRef:
        return LLVM.source(path, ref)

    def host_version_checks(self) -> List[VersionCheck]:
        return [
            VersionCheck(
                command="cmake",
                pattern=rf"(?m)^cmake version {SEMVER}$",
                comparator=minimum_version("3.20.0"),
            ),
            VersionCheck(
                command="python3",
                pattern=rf"(?m)^Python {SEMVER}$",
                comparator=minimum_version("3.6.0"),
            ),
        ]

    def phases(self) -> List[BuildPhase]:
        return [
            BuildPhase(
                "musl-headers", "make", self.fetch_musl, self.install_musl_headers
            ),
            BuildPhase("compiler", self.backend, self.configure, self.compile),
        ]

    @property
    def sysroot_directory(self) -> Path:
        return self.output_directory / "sysroot"

    # ========================================================================
    # musl headers
    # ========================================================================

    def fetch_musl(self, build_directory: Path) -> None:
        self.musl_source = MUSL.source(self.scratch_directory / "musl")
        self.resolve(self.musl_source)

    def install_musl_headers(self, build_directory: Path) -> None:
        options = MakeOptions(
            variables={
                "ARCH": StringValue(self.triplet.musl_architecture),
                "prefix": StringValue("/usr"),
                "DESTDIR": StringValue(str(self.sysroot_directory)),
            }
        )
        self.run_runner(
            MakeRunner(
                build_directory,
                directory=self.musl_source.local_path,
                targets=["install-headers"],
                options=[options],
            )
        )

    # ========================================================================
    # compiler
    # ========================================================================

    def host_triplet(self) -> str:
        result = self.run_command("clang", ["-dumpmachine"])
        host = result.stdout.strip()
        if not host:
            raise VersionExtractionError(
                "Host clang did not report its target triplet", output=result.stdout
            )
        return host

    def cmake_options(self, host_triplet: str) -> CMakeOptions:
        target = str(self.triplet)
        common_flags = separated("-DTSAN_VECTORIZE=0")
        targets_to_build = separated(
            *sorted({llvm_target(self.triplet.machine), llvm_target(host_triplet.split("-")[0])}),
            separator=";",
        )
        return CMakeOptions(
            defines={
                "LLVM_HOST_TRIPLE": StringValue(host_triplet),
                "LLVM_TARGET_TRIPLE": StringValue(target),
                "LLVM_DEFAULT_TARGET_TRIPLE": StringValue(target),
                "CMAKE_SYSTEM_NAME": StringValue("Linux"),
                "CMAKE_C_COMPILER_TARGET": StringValue(host_triplet),
                "CMAKE_CXX_COMPILER_TARGET": StringValue(host_triplet),
                "CMAKE_C_COMPILER": StringValue("clang"),
                "CMAKE_CXX_COMPILER": StringValue("clang++"),
                "CMAKE_BUILD_TYPE": StringValue("Release"),
                "CMAKE_C_FLAGS": common_flags,
                "CMAKE_CXX_FLAGS": common_flags,
                "DEFAULT_SYSROOT": StringValue("../sysroot"),
                "LLVM_ENABLE_PROJECTS": separated(
                    "clang", "clang-tools-extra", "lld", separator=";"
                ),
                "LLVM_ENABLE_RUNTIMES": separated(
                    "compiler-rt", "libcxx", "libcxxabi", "libunwind", separator=";"
                ),
                "LLVM_TARGETS_TO_BUILD": targets_to_build,
                "LLVM_APPEND_VC_REV": ON,
                # musl requires position independent code
                "LLVM_ENABLE_PIC": ON,
                "LLVM_ENABLE_LLD": ON,
                "LLVM_ENABLE_ZSTD": FORCE_ON,
                "LLVM_INSTALL_BINUTILS_SYMLINKS": ON,
                "LLVM_INSTALL_CCTOOLS_SYMLINKS": ON,
                "LLVM_INSTALL_UTILS": ON,
                "LLVM_PARALLEL_LINK_JOBS": StringValue(
                    str(recommended_parallel_link_jobs())
                ),
                "COMPILER_RT_BUILD_SANITIZERS": OFF,
                "CLANG_DEFAULT_RTLIB": StringValue("compiler-rt"),
                "CLANG_DEFAULT_UNWINDLIB": StringValue("libunwind"),
                "CLANG_DEFAULT_CXX_STDLIB": StringValue("libc++"),
                "LIBCXX_CXX_ABI": StringValue("libcxxabi"),
                "LIBCXX_USE_COMPILER_RT": ON,
                "LIBCXXABI_USE_LLVM_UNWINDER": ON,
                "LIBCXXABI_USE_COMPILER_RT": ON,
                "LIBUNWIND_USE_COMPILER_RT": ON,
                "CLANG_VENDOR": StringValue(VENDOR),
                "LLD_VENDOR": StringValue(VENDOR),
            },
            undefines=["CLANG_VENDOR_UTI"],
        )

    def configure(self, build_directory: Path) -> None:
        self.cmake_configure(
            build_directory,
            self.cmake_options(self.host_triplet()),
            source_path=self.source_directory / "llvm",
        )
        self.record_version(self.cache_version(build_directory))

    def cache_version(self, build_directory: Path) -> str:
        """Read the project version CMake stored in the build cache."""
        try:
            cache = read_cmake_cache(build_directory)
        except OSError as e:
            raise FilesystemError(f"Failed to read CMake cache: {e}") from e
        missing = [key for key in VERSION_CACHE_KEYS if key not in cache]
        if missing:
            raise VersionExtractionError(
                f"CMake cache in {build_directory} lacks {', '.join(missing)}"
            )
        return ".".join(cache[key] for key in VERSION_CACHE_KEYS)

    def compile(self, build_directory: Path) -> None:
        self.ninja_build(build_directory)

    def version_check(self) -> Optional[VersionCheck]:
        return VersionCheck(
            command=str(self.output_directory / "bin" / "clang"),
            pattern=f"clang version {SEMVER}",
            comparator=exact_version(self.recorded_version),
        )
