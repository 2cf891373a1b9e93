"""
sfdx-prebuilt CLI argument parser.

This module implements the command-line interface of the installer using argparse.
"""

import argparse
import importlib
import logging
from pathlib import Path
from typing import List, Optional

from sfdxprebuilt import __version__

logger = logging.getLogger(__name__)


class CLI:
    """sfdx-prebuilt command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="sfdx-prebuilt",
            description="sfdx-prebuilt - Install a prebuilt Salesforce CLI",
            epilog='Use "sfdx-prebuilt COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"sfdx-prebuilt {__version__}"
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
            help="Path to a YAML configuration file",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_path_command(subparsers)
        self._add_verify_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Resolve or download the sfdx binary",
            description=(
                "Find an sfdx binary matching the published manifest version, "
                "downloading it if needed, and record its location"
            ),
        )
        parser.add_argument(
            "--platform",
            metavar="NAME",
            help="Target platform (linux, darwin, win32) [default: host]",
        )
        parser.add_argument(
            "--arch",
            metavar="ARCH",
            help="Target architecture (x64, ia32) [default: host]",
        )
        parser.add_argument(
            "--tmp-dir",
            type=Path,
            metavar="DIR",
            help="Preferred directory for temporary downloads",
        )
        parser.add_argument(
            "--install-root",
            type=Path,
            metavar="DIR",
            help="Directory receiving the binary and its location record",
        )
        parser.add_argument(
            "--no-progress",
            action="store_true",
            help="Do not display a download progress bar",
        )

    def _add_path_command(self, subparsers):
        """Add 'path' subcommand."""
        parser = subparsers.add_parser(
            "path",
            help="Print the installed binary path",
            description="Print the path of the installed sfdx binary",
        )
        parser.add_argument(
            "--install-root",
            type=Path,
            metavar="DIR",
            help="Directory holding the location record",
        )

    def _add_verify_command(self, subparsers):
        """Add 'verify' subcommand."""
        parser = subparsers.add_parser(
            "verify",
            help="Verify the installed binary",
            description=(
                "Check that the recorded binary exists and reports the "
                "manifest version"
            ),
        )
        parser.add_argument(
            "--install-root",
            type=Path,
            metavar="DIR",
            help="Directory holding the location record",
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

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            logger.debug("Command failure details", exc_info=True)
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
        command_map = {
            "install": "sfdxprebuilt.cli.commands.install",
            "path": "sfdxprebuilt.cli.commands.path",
            "verify": "sfdxprebuilt.cli.commands.verify",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the sfdx-prebuilt CLI.

    Args:
        args: Command-line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    cli = CLI()
    return cli.run(args)
