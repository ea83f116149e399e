"""
Meson runner.

Meson takes cross-compilation metadata from machine files instead of
command-line flags, so the runner writes a cross file and a native file
into the build directory during setup and points ``meson setup`` at them.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from distrobuilder.backends.base import Runner
from distrobuilder.config.option_sets import MesonOptions, RunnerOptions
from distrobuilder.config.options import (
    BoolValue,
    OptionMap,
    OptionValue,
    SeparatorValue,
    StringValue,
)

logger = logging.getLogger(__name__)

CROSS_FILE_NAME = "meson-cross-file.txt"
NATIVE_FILE_NAME = "meson-native-file.txt"


def _quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def render_machine_value(value: OptionValue) -> str:
    """
    Render a value in Meson machine-file syntax.

    Strings are single-quoted, booleans are bare and separator lists
    become arrays.

    Example:
        >>> render_machine_value(SeparatorValue(("clang", "--target=x86_64-linux-musl")))
        "['clang', '--target=x86_64-linux-musl']"
    """
    if isinstance(value, BoolValue):
        return value.render()
    if isinstance(value, SeparatorValue):
        return "[" + ", ".join(_quote(v) for v in value.values) + "]"
    return _quote(value.render())


def render_machine_file(sections: Mapping[str, OptionMap]) -> str:
    """Render sections of a Meson machine file."""
    blocks = []
    for section, values in sections.items():
        lines = [f"[{section}]"]
        lines.extend(
            f"{key} = {render_machine_value(value)}" for key, value in values.items()
        )
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n" if blocks else ""


class MesonRunner(Runner):
    """
    Run ``meson setup`` for a source directory.

    Args:
        build_directory: Meson build directory (created if missing)
        source_path: Project source directory
        options: Meson option sets, merged left to right
        runner_options: Environment overlays
    """

    name = "meson"

    def __init__(
        self,
        build_directory: Path,
        source_path: Path,
        options: Sequence[Optional[MesonOptions]] = (),
        runner_options: Sequence[Optional[RunnerOptions]] = (),
    ):
        super().__init__(build_directory, runner_options)
        self.build_directory = Path(build_directory)
        self.source_path = Path(source_path)
        forced = MesonOptions(options={"backend": StringValue("ninja")})
        self.options = MesonOptions.merge(*options, forced)

    @property
    def cross_file_path(self) -> Path:
        return self.build_directory / CROSS_FILE_NAME

    @property
    def native_file_path(self) -> Path:
        return self.build_directory / NATIVE_FILE_NAME

    @property
    def command(self) -> str:
        return "meson"

    def _machine_files(self) -> Dict[Path, Mapping[str, OptionMap]]:
        files = {}
        if self.options.cross_file:
            files[self.cross_file_path] = self.options.cross_file
        if self.options.native_file:
            files[self.native_file_path] = self.options.native_file
        return files

    def setup(self) -> None:
        self.build_directory.mkdir(parents=True, exist_ok=True)
        for path, sections in self._machine_files().items():
            path.write_text(render_machine_file(sections), encoding="utf-8")
            logger.debug(f"Wrote Meson machine file {path}")

    def arguments(self) -> List[str]:
        args = ["setup"]
        if self.options.cross_file:
            args.append(f"--cross-file={self.cross_file_path}")
        if self.options.native_file:
            args.append(f"--native-file={self.native_file_path}")
        args.extend(
            f"-D{name}={value.render()}" for name, value in self.options.options.items()
        )
        args.extend([str(self.build_directory), str(self.source_path)])
        return args
