"""
Command-line interface for nativebuild.

This module provides the `nativebuild` CLI tool for installing command line
tools and building native executables.
"""

import argparse
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from nativebuild import __version__
from nativebuild.build.ir import load_ir_toolchain
from nativebuild.build.orchestrator import BuildOrchestrator
from nativebuild.cli_utils import ClasspathParser, ErrorFormatter, configure_logging
from nativebuild.config import GarbageCollector, Mode
from nativebuild.errors import NativeBuildError
from nativebuild.packages.downloader import DownloadError
from nativebuild.packages.maven import ArtifactFetcher, ResolutionError
from nativebuild.packages.tool_manifest import ManifestError, ToolRepo, fetch_properties

DEFAULT_WORKDIR = Path("target") / "native"


@dataclass
class GetArgs:
    """Arguments for the get command."""

    repo: ToolRepo
    verbose: bool = False


@dataclass
class LinkArgs:
    """Arguments for the link command."""

    main: str
    classpath: List[Path] = field(default_factory=list)
    workdir: Path = DEFAULT_WORKDIR
    gc: GarbageCollector = GarbageCollector.IMMIX
    mode: Mode = Mode.RELEASE
    ir_toolchain: Optional[str] = None
    jobs: Optional[int] = None
    verbose: bool = False


def get_command(args: GetArgs) -> None:
    """Install a command line tool.

    Examples:
        nativebuild get org/repo       # Fetch the tool's jars
    """
    print(f"Installing {args.repo}...")

    try:
        props = fetch_properties(args.repo)
        if args.verbose:
            print(f"Artifact: {props.coordinate}")

        jars = ArtifactFetcher().fetch_jars(props.coordinate)
        print("Fetched jars:\n  " + "\n  ".join(str(jar) for jar in jars))
        sys.exit(0)

    except ManifestError as e:
        ErrorFormatter.handle_build_error("Invalid tool manifest", e)
    except ResolutionError as e:
        ErrorFormatter.handle_build_error("Artifact not found", e)
    except DownloadError as e:
        ErrorFormatter.handle_build_error("Download failed", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def link_command(args: LinkArgs) -> None:
    """Build a native executable.

    Examples:
        nativebuild link example.Main -cp nativelib.jar:classes
        nativebuild link example.Main -cp nativelib.jar:classes --gc boehm
        nativebuild link example.Main -cp ... --workdir target/native -v
    """
    try:
        tools = load_ir_toolchain(args.ir_toolchain)
        orchestrator = BuildOrchestrator(tools, verbose=args.verbose)

        if args.verbose:
            print(f"Building {args.main} in {args.workdir}")
            print()

        start_time = time.time()
        config = orchestrator.configure(
            args.classpath,
            args.workdir,
            args.main,
            gc=args.gc,
            mode=args.mode,
            jobs=args.jobs,
        )
        result = orchestrator.build(config)
        build_time = time.time() - start_time

        ErrorFormatter.print_success("Build successful!")
        print()
        print(f"Executable: {result.output}")
        if args.verbose:
            print(f"Units: {len(result.units)}, runtime objects: {len(result.runtime.objects)}")
        print(f"Build time: {build_time:.2f}s")
        sys.exit(0)

    except NativeBuildError as e:
        ErrorFormatter.handle_build_error("Build failed!", e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def _gc_type(value: str) -> GarbageCollector:
    try:
        return GarbageCollector.from_name(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _mode_type(value: str) -> Mode:
    try:
        return Mode.from_name(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _repo_type(value: str) -> ToolRepo:
    try:
        return ToolRepo.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nativebuild",
        description="nativebuild - native executables from linked IR",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"nativebuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Get command
    get_parser = subparsers.add_parser(
        "get",
        help="Install a command line tool",
    )
    get_parser.add_argument(
        "repo",
        type=_repo_type,
        help="The GitHub org/repo to install",
    )
    get_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    # Link command
    link_parser = subparsers.add_parser(
        "link",
        help="Build a native executable",
    )
    link_parser.add_argument(
        "main",
        help="Fully qualified name of the entry point",
    )
    link_parser.add_argument(
        "-cp",
        "--classpath",
        action="append",
        required=True,
        help="Classpath entries, separated by the platform path separator (repeatable)",
    )
    link_parser.add_argument(
        "-w",
        "--workdir",
        type=Path,
        default=DEFAULT_WORKDIR,
        help=f"Work directory, owned by the build (default: {DEFAULT_WORKDIR})",
    )
    link_parser.add_argument(
        "--gc",
        type=_gc_type,
        default=GarbageCollector.default(),
        help="Garbage collector: none, boehm, immix (default: immix)",
    )
    link_parser.add_argument(
        "--mode",
        type=_mode_type,
        default=Mode.default(),
        help="Optimization mode: debug, release (default: release)",
    )
    link_parser.add_argument(
        "--ir-toolchain",
        default=None,
        help="Registered IR toolchain to use (default: first registered)",
    )
    link_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel compile jobs (default: CPU count)",
    )
    link_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )

    subparsers.add_parser("version", help="Print version")
    subparsers.add_parser("help", help="Print this help message")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """nativebuild - native executables from linked IR."""
    parser = build_parser()
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command or parsed_args.command == "help":
        parser.print_help()
        sys.exit(0)

    if parsed_args.command == "version":
        print(__version__)
        sys.exit(0)

    configure_logging(getattr(parsed_args, "verbose", False))

    if parsed_args.command == "get":
        get_command(GetArgs(repo=parsed_args.repo, verbose=parsed_args.verbose))
    elif parsed_args.command == "link":
        link_args = LinkArgs(
            main=parsed_args.main,
            classpath=ClasspathParser.parse(parsed_args.classpath),
            workdir=parsed_args.workdir,
            gc=parsed_args.gc,
            mode=parsed_args.mode,
            ir_toolchain=parsed_args.ir_toolchain,
            jobs=parsed_args.jobs,
            verbose=parsed_args.verbose,
        )
        link_command(link_args)


if __name__ == "__main__":
    main()
