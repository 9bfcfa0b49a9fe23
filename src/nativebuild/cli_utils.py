"""CLI utility functions for nativebuild.

This module provides common utilities used across CLI commands including:
- Classpath argument parsing
- Logging setup
- Error handling and formatting
"""

import logging
import os
import sys
from pathlib import Path
from typing import List, NoReturn


class ClasspathParser:
    """Parses classpath arguments."""

    @staticmethod
    def parse(values: List[str]) -> List[Path]:
        """Split one or more classpath strings into entries.

        Each value may itself hold several entries separated by the platform
        path separator (':' on POSIX, ';' on Windows). Empty entries are
        dropped and order is preserved.

        Args:
            values: Raw --classpath values

        Returns:
            Classpath entries
        """
        entries = []
        for value in values:
            for part in value.split(os.pathsep):
                if part.strip():
                    entries.append(Path(part.strip()))
        return entries


def configure_logging(verbose: bool = False) -> None:
    """Setup logging for a CLI run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Build failed")
            message: Error message details
        """
        print(file=sys.stderr)
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}", file=sys.stderr)
        if message:
            print(file=sys.stderr)
            print(message, file=sys.stderr)
        print(file=sys.stderr)

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_build_error(title: str, error: Exception) -> NoReturn:
        """Report an expected failure (toolchain, link, download...) and exit 1."""
        ErrorFormatter.print_error(title, str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> NoReturn:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> NoReturn:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:", file=sys.stderr)
            print(traceback.format_exc(), file=sys.stderr)

        sys.exit(1)
