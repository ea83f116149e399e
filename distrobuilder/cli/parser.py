"""
distrobuilder CLI argument parser.

This module implements the command-line interface for distrobuilder using
argparse. The ``build`` command gets one subcommand per registered recipe,
each offering only the flags its capabilities need.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

from distrobuilder.build.context import Capability
from distrobuilder.build.registry import RecipeEntry, get_global_registry
from distrobuilder.cli.utils import (
    existing_directory,
    git_ref,
    log_error,
    positive_seconds,
    target_triplet,
)
from distrobuilder.core.exceptions import DistroBuilderError

try:
    __version__ = version("distrobuilder")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

COMMAND_MODULES = {
    "build": "distrobuilder.cli.commands.build",
    "list": "distrobuilder.cli.commands.list",
}


class CLI:
    """distrobuilder command-line interface."""

    def __init__(self, registry=None):
        """
        Initialize CLI with argument parser.

        Args:
            registry: Recipe registry (default: the global registry)
        """
        self.registry = registry or get_global_registry()
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="distrobuilder",
            description="distrobuilder - cross-compiled musl/clang Linux distribution builder",
            epilog='Use "distrobuilder COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"distrobuilder {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./distrobuilder.yaml)",
        )
        parser.add_argument(
            "--timeout",
            type=positive_seconds,
            metavar="SECONDS",
            help="Cancel the build after this many seconds",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )
        self._add_build_command(subparsers)
        self._add_list_command(subparsers)

        return parser

    def _add_build_command(self, subparsers):
        """Add 'build' subcommand with one subcommand per recipe."""
        parser = subparsers.add_parser(
            "build",
            help="Build a package",
            description="Fetch, configure, build and verify a package",
        )
        packages = parser.add_subparsers(
            dest="package", help="Package to build", metavar="PACKAGE"
        )
        for entry in self.registry.list():
            self._add_recipe_command(packages, entry)

    def _add_recipe_command(self, subparsers, entry: RecipeEntry):
        """Add 'build <package>' with flags for the recipe's capabilities."""
        parser = subparsers.add_parser(
            entry.name, help=entry.description, description=entry.description
        )
        capabilities = entry.capabilities

        if Capability.SOURCE in capabilities:
            parser.add_argument(
                "--source-directory-path",
                "-S",
                type=Path,
                metavar="PATH",
                help="Source checkout location (default: temporary directory, removed after the build)",
            )
        if Capability.FILESYSTEM_OUTPUT in capabilities:
            parser.add_argument(
                "--output-directory-path",
                "-O",
                type=Path,
                metavar="PATH",
                help="Staging directory; existing contents are removed (default: temporary directory)",
            )
        if Capability.GIT_REF in capabilities:
            parser.add_argument(
                "--git-ref",
                type=git_ref,
                metavar="REF",
                help="HEAD, a commit id or a refs/ name (default: the recipe's pinned ref)",
            )
        if Capability.TOOLCHAIN in capabilities:
            parser.add_argument(
                "--toolchain-directory-path",
                "-T",
                type=existing_directory,
                metavar="PATH",
                help="Cross toolchain installation or bin directory",
            )
        if Capability.TOOLCHAIN in capabilities or Capability.TARGET_TRIPLET in capabilities:
            parser.add_argument(
                "--target-triplet",
                "-t",
                type=target_triplet,
                metavar="TRIPLET",
                help="Target triplet (default: <host machine>-pc-linux-musl)",
            )
        if Capability.ROOT_FS in capabilities:
            parser.add_argument(
                "--root-fs-directory-path",
                "-R",
                type=existing_directory,
                metavar="PATH",
                help="Target root filesystem used as sysroot",
            )

        parser.add_argument(
            "--check-host-requirements-only",
            "-c",
            action="store_true",
            help="Only check that the host has the required tools",
        )
        parser.add_argument(
            "--skip-verification",
            "-s",
            action="store_true",
            help="Do not verify the build output",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List buildable packages",
            description="List registered packages and the inputs they accept",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1
        if parsed_args.command == "build" and not parsed_args.package:
            self.parser.parse_args(["build", "--help"])
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except DistroBuilderError as e:
            log_error(e, verbose=parsed_args.verbose)
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        module_name = COMMAND_MODULES.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args, registry=self.registry)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
