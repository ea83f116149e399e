"""
Configuration layers for cross builds.

A build composes its backend options from an ordered list of layers, each
owning one concern:

- ToolchainLayer: compilers, linker, target triplet and PATH
- SysrootLayer: the target root filesystem used for headers and libraries
- OutputLayer: install prefix and DESTDIR staging into the output directory
- OverrideLayer: caller-supplied options from the project configuration

The package's own options are merged after the layers, and conflicts on
non-mergeable keys raise UnmergeableOptionError before any process starts.

Example:
    >>> layers = [OutputLayer(Path("/srv/out")), ToolchainLayer(toolchain)]
    >>> options = compose(layers, ConfigureOptions, ConfigureOptions(flags=["--disable-nls"]))
"""

import logging
import os
from abc import ABC
from pathlib import Path
from typing import Dict, Optional, Sequence, Type, TypeVar

from distrobuilder.config.option_sets import (
    CMakeOptions,
    ConfigureOptions,
    MakeOptions,
    MesonOptions,
    RunnerOptions,
)
from distrobuilder.config.options import StringValue, separated
from distrobuilder.toolchain.toolchain import Toolchain

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Meson cpu_family for each triplet machine
MESON_CPU_FAMILIES: Dict[str, str] = {
    "x86_64": "x86_64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "aarch64": "aarch64",
    "arm": "arm",
    "armv6": "arm",
    "armv7": "arm",
    "riscv64": "riscv64",
    "powerpc64le": "ppc64",
    "s390x": "s390x",
}

BIG_ENDIAN_MACHINES = ("s390x", "powerpc64", "mips")


# ============================================================================
# Layer Base Class
# ============================================================================


class ConfigLayer(ABC):
    """
    Base class for configuration layers.

    Subclasses override the accessor for each backend they contribute to;
    the defaults contribute nothing.
    """

    name = "layer"

    def runner_options(self) -> Optional[RunnerOptions]:
        return None

    def cmake_options(self) -> Optional[CMakeOptions]:
        return None

    def configure_options(self) -> Optional[ConfigureOptions]:
        return None

    def make_options(self) -> Optional[MakeOptions]:
        return None

    def meson_options(self) -> Optional[MesonOptions]:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# ============================================================================
# Concern Layers
# ============================================================================


class ToolchainLayer(ConfigLayer):
    """Point every backend at the toolchain's compilers and target."""

    name = "toolchain"

    def __init__(self, toolchain: Toolchain):
        self.toolchain = toolchain

    def _compile_flags(self):
        return (
            f"--target={self.toolchain.triplet}",
            "-gz=zstd",
            f"-fuse-ld={self.toolchain.linker}",
        )

    def runner_options(self) -> RunnerOptions:
        inherited = [p for p in os.environ.get("PATH", "").split(os.pathsep) if p]
        return RunnerOptions(
            environment={
                "PATH": separated(
                    str(self.toolchain.bin_directory), *inherited, separator=os.pathsep
                )
            }
        )

    def cmake_options(self) -> CMakeOptions:
        triplet = self.toolchain.triplet
        target = str(triplet)
        return CMakeOptions(
            defines={
                "CMAKE_SYSTEM_NAME": StringValue(triplet.kernel.capitalize()),
                "CMAKE_SYSTEM_PROCESSOR": StringValue(triplet.machine),
                "CMAKE_C_COMPILER": StringValue(str(self.toolchain.c_compiler)),
                "CMAKE_CXX_COMPILER": StringValue(str(self.toolchain.cxx_compiler)),
                "CMAKE_C_COMPILER_TARGET": StringValue(target),
                "CMAKE_CXX_COMPILER_TARGET": StringValue(target),
                "CMAKE_LINKER": StringValue(str(self.toolchain.linker)),
                "CMAKE_C_FLAGS": separated("-gz=zstd"),
                "CMAKE_CXX_FLAGS": separated("-gz=zstd"),
                "CMAKE_EXE_LINKER_FLAGS": separated(f"-fuse-ld={self.toolchain.linker}"),
                "CMAKE_SHARED_LINKER_FLAGS": separated(
                    f"-fuse-ld={self.toolchain.linker}"
                ),
            }
        )

    def configure_options(self) -> ConfigureOptions:
        flags = self._compile_flags()
        return ConfigureOptions(
            variables={
                "CC": StringValue(str(self.toolchain.c_compiler)),
                "CXX": StringValue(str(self.toolchain.cxx_compiler)),
                "CFLAGS": separated(*flags),
                "CXXFLAGS": separated(*flags),
                "LDFLAGS": separated(f"-fuse-ld={self.toolchain.linker}"),
                "LIBCC": StringValue("-lclang_rt.builtins"),
            }
        )

    def meson_options(self) -> MesonOptions:
        triplet = self.toolchain.triplet
        machine = triplet.machine.lower()
        target = f"--target={triplet}"
        return MesonOptions(
            cross_file={
                "binaries": {
                    "c": separated(str(self.toolchain.c_compiler), target),
                    "cpp": separated(str(self.toolchain.cxx_compiler), target),
                    "c_ld": StringValue("lld"),
                    "cpp_ld": StringValue("lld"),
                },
                "host_machine": {
                    "system": StringValue(triplet.kernel.lower()),
                    "cpu_family": StringValue(MESON_CPU_FAMILIES.get(machine, machine)),
                    "cpu": StringValue(machine),
                    "endian": StringValue(
                        "big" if machine.startswith(BIG_ENDIAN_MACHINES) else "little"
                    ),
                },
            }
        )

    def __repr__(self) -> str:
        return f"ToolchainLayer({self.toolchain.bin_directory}, {self.toolchain.triplet})"


class SysrootLayer(ConfigLayer):
    """Resolve target headers, libraries and pkg-config files from a root filesystem."""

    name = "sysroot"

    def __init__(self, root_fs_directory: Path):
        self.root_fs_directory = Path(root_fs_directory)

    @property
    def pkgconfig_directory(self) -> Path:
        return self.root_fs_directory / "usr" / "lib" / "pkgconfig"

    def runner_options(self) -> RunnerOptions:
        return RunnerOptions(
            environment={
                "PKG_CONFIG_PATH": separated(
                    str(self.pkgconfig_directory), separator=os.pathsep
                ),
                "PKG_CONFIG_SYSROOT_DIR": StringValue(str(self.root_fs_directory)),
            }
        )

    def cmake_options(self) -> CMakeOptions:
        root = str(self.root_fs_directory)
        return CMakeOptions(
            defines={
                "CMAKE_SYSROOT": StringValue(root),
                "CMAKE_FIND_ROOT_PATH": StringValue(root),
                "CMAKE_FIND_ROOT_PATH_MODE_PROGRAM": StringValue("NEVER"),
                "CMAKE_FIND_ROOT_PATH_MODE_LIBRARY": StringValue("ONLY"),
                "CMAKE_FIND_ROOT_PATH_MODE_INCLUDE": StringValue("ONLY"),
                "CMAKE_FIND_ROOT_PATH_MODE_PACKAGE": StringValue("ONLY"),
            }
        )

    def configure_options(self) -> ConfigureOptions:
        sysroot_flag = f"--sysroot={self.root_fs_directory}"
        return ConfigureOptions(
            variables={
                "CFLAGS": separated(sysroot_flag),
                "CXXFLAGS": separated(sysroot_flag),
                "LDFLAGS": separated(sysroot_flag),
            }
        )

    def meson_options(self) -> MesonOptions:
        return MesonOptions(
            cross_file={
                "properties": {
                    "sys_root": StringValue(str(self.root_fs_directory)),
                    "pkg_config_libdir": StringValue(str(self.pkgconfig_directory)),
                }
            }
        )

    def __repr__(self) -> str:
        return f"SysrootLayer({self.root_fs_directory})"


class OutputLayer(ConfigLayer):
    """
    Stage installs into the output directory.

    Builds are configured for the final prefix (``/usr`` by default) and
    installed with DESTDIR pointing at the output directory, so files land
    under ``<output>/usr/...`` while embedded paths stay relative to ``/``.
    """

    name = "output"

    def __init__(self, output_directory: Path, prefix: str = "/usr"):
        self.output_directory = Path(output_directory)
        self.prefix = prefix

    def runner_options(self) -> RunnerOptions:
        return RunnerOptions(
            environment={"DESTDIR": StringValue(str(self.output_directory))}
        )

    def cmake_options(self) -> CMakeOptions:
        return CMakeOptions(
            defines={"CMAKE_INSTALL_PREFIX": StringValue(self.prefix)}
        )

    def configure_options(self) -> ConfigureOptions:
        return ConfigureOptions(arguments={"--prefix": StringValue(self.prefix)})

    def make_options(self) -> MakeOptions:
        return MakeOptions(
            variables={"DESTDIR": StringValue(str(self.output_directory))}
        )

    def meson_options(self) -> MesonOptions:
        return MesonOptions(options={"prefix": StringValue(self.prefix)})

    def __repr__(self) -> str:
        return f"OutputLayer({self.output_directory}, prefix={self.prefix})"


class OverrideLayer(ConfigLayer):
    """Caller-supplied option sets, typically read from the project configuration."""

    name = "overrides"

    def __init__(
        self,
        runner: Optional[RunnerOptions] = None,
        cmake: Optional[CMakeOptions] = None,
        configure: Optional[ConfigureOptions] = None,
        make: Optional[MakeOptions] = None,
        meson: Optional[MesonOptions] = None,
    ):
        self._runner = runner
        self._cmake = cmake
        self._configure = configure
        self._make = make
        self._meson = meson

    def runner_options(self) -> Optional[RunnerOptions]:
        return self._runner

    def cmake_options(self) -> Optional[CMakeOptions]:
        return self._cmake

    def configure_options(self) -> Optional[ConfigureOptions]:
        return self._configure

    def make_options(self) -> Optional[MakeOptions]:
        return self._make

    def meson_options(self) -> Optional[MesonOptions]:
        return self._meson


# ============================================================================
# Composition
# ============================================================================

_ACCESSORS = {
    RunnerOptions: "runner_options",
    CMakeOptions: "cmake_options",
    ConfigureOptions: "configure_options",
    MakeOptions: "make_options",
    MesonOptions: "meson_options",
}


def compose(
    layers: Sequence[ConfigLayer],
    kind: Type[T],
    *extra: Optional[T],
    overrides: Sequence[ConfigLayer] = (),
) -> T:
    """
    Merge one backend's options: layers, then extra sets, then overrides.

    Args:
        layers: Layers in merge order
        kind: OptionSet class to compose (e.g., CMakeOptions)
        *extra: Package option sets merged after the layers
        overrides: Caller override layers merged last

    Returns:
        Merged option set of the requested kind

    Raises:
        UnmergeableOptionError: If two sources define the same
            non-mergeable key
    """
    accessor = _ACCESSORS[kind]
    sets = [getattr(layer, accessor)() for layer in layers]
    override_sets = [getattr(layer, accessor)() for layer in overrides]
    logger.debug(
        f"Composing {kind.__name__} from {[repr(layer) for layer in layers]}"
    )
    return kind.merge(*sets, *extra, *override_sets)
