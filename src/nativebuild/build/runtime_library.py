"""
Runtime support library assembly.

The runtime library ships as C/C++ sources inside the nativelib archive.
This module unpacks it (through the content cache), decides which sources
the current build needs, and compiles them to object files next to the
sources.

Source selection is decided once per unpack and stored in a manifest:

    lib/
    ├── sources.json            # {relative path: kind, tag}
    ├── gc/immix/*.c            # kind=gc, tag=immix
    ├── gc/boehm/gc.c           # kind=gc, tag=boehm
    ├── optional/re2.cpp        # kind=optional, tag=re2
    └── platform/posix/*.c      # kind=unconditional

Inclusion rules:
    - optional: included iff the tag is one of the native libraries the
      linked program requires
    - gc: included iff the tag is the selected collector's name
    - unconditional: always included

Object files that already exist are reused without checking their content
against the current flags or sources.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..config import BuildConfig, GarbageCollector
from ..errors import NativeLibUnpackFailed, RuntimeCompileFailed
from ..packages.cache import ContentCache
from ..packages.downloader import ExtractionError
from .parallel import run_parallel
from .process_runner import ProcessResult, run_tool

logger = logging.getLogger(__name__)

MANIFEST_NAME = "sources.json"
SOURCE_SUFFIXES = (".c", ".cpp")
CPP_STD_FLAG = "-std=c++11"
RUNTIME_OPT_FLAG = "-O2"


class SourceKind(Enum):
    UNCONDITIONAL = "unconditional"
    GC = "gc"
    OPTIONAL = "optional"


def classify(relative_path: Path) -> Tuple[SourceKind, Optional[str]]:
    """Classify a source by its position in the unpacked tree.

    Args:
        relative_path: Path relative to the unpacked root

    Returns:
        (kind, tag) where tag is the optional feature name, the collector
        name, or None for unconditional sources
    """
    parts = relative_path.parts
    directories = parts[:-1]

    if "optional" in directories:
        return SourceKind.OPTIONAL, relative_path.name.split(".")[0]

    if "gc" in directories:
        index = directories.index("gc")
        # A source directly inside gc/ belongs to no collector
        tag = directories[index + 1] if index + 1 < len(directories) else ""
        return SourceKind.GC, tag

    return SourceKind.UNCONDITIONAL, None


@dataclass(frozen=True)
class RuntimeSource:
    """One C/C++ source file of the runtime library."""

    path: Path
    kind: SourceKind
    tag: Optional[str] = None

    @property
    def is_cpp(self) -> bool:
        return self.path.suffix == ".cpp"

    @property
    def object_path(self) -> Path:
        return Path(str(self.path) + ".o")

    def is_included(self, gc: GarbageCollector, links: Iterable[str]) -> bool:
        if self.kind is SourceKind.OPTIONAL:
            return self.tag in set(links)
        if self.kind is SourceKind.GC:
            return self.tag == gc.value
        return True


@dataclass
class RuntimeManifest:
    """Classification of every runtime source in an unpacked tree."""

    root: Path
    sources: List[RuntimeSource] = field(default_factory=list)

    @classmethod
    def scan(cls, root: Path) -> "RuntimeManifest":
        """Classify all .c/.cpp files under root."""
        sources = []
        for path in sorted(root.rglob("*")):
            if path.is_file() and path.suffix in SOURCE_SUFFIXES:
                kind, tag = classify(path.relative_to(root))
                sources.append(RuntimeSource(path, kind, tag))
        return cls(root=root, sources=sources)

    def to_dict(self) -> Dict[str, Dict[str, Optional[str]]]:
        return {
            source.path.relative_to(self.root).as_posix(): {
                "kind": source.kind.value,
                "tag": source.tag,
            }
            for source in self.sources
        }

    def write(self) -> Path:
        manifest_path = self.root / MANIFEST_NAME
        manifest_path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True))
        return manifest_path

    @classmethod
    def load(cls, root: Path) -> "RuntimeManifest":
        """Read the manifest written at unpack time, rebuilding it if absent."""
        manifest_path = root / MANIFEST_NAME
        try:
            data = json.loads(manifest_path.read_text())
            sources = [
                RuntimeSource(root / relative, SourceKind(entry["kind"]), entry.get("tag"))
                for relative, entry in sorted(data.items())
            ]
            return cls(root=root, sources=sources)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.info("Rebuilding runtime source manifest (%s)", e)
            manifest = cls.scan(root)
            manifest.write()
            return manifest

    def select(
        self, gc: GarbageCollector, links: Iterable[str]
    ) -> Tuple[List[RuntimeSource], List[RuntimeSource]]:
        """Split sources into (included, excluded) for this build."""
        link_names = set(links)
        included: List[RuntimeSource] = []
        excluded: List[RuntimeSource] = []
        for source in self.sources:
            if source.is_included(gc, link_names):
                included.append(source)
            else:
                excluded.append(source)
        return included, excluded


@dataclass
class RuntimeLibrary:
    """Compiled runtime library ready for linking."""

    lib_dir: Path
    objects: List[Path]
    compiled: List[Path] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)


class RuntimeLibraryAssembler:
    """
    Unpacks and compiles the runtime support library.

    Example usage:
        assembler = RuntimeLibraryAssembler(config)
        runtime = assembler.assemble(linked.links)
        print(f"{len(runtime.objects)} runtime objects")
    """

    def __init__(
        self,
        config: BuildConfig,
        runner: Optional[Callable[..., ProcessResult]] = None,
    ):
        self.config = config
        self.runner = runner or run_tool
        self.cache = ContentCache(config.nativelib, config.lib_dir)

    def unpack(self) -> RuntimeManifest:
        """Make sure the unpacked tree matches the archive.

        Returns:
            The source manifest of the unpacked tree

        Raises:
            NativeLibUnpackFailed: If the archive is corrupt or unreadable
        """
        try:
            refreshed = self.cache.ensure(
                before_marker=lambda root: RuntimeManifest.scan(root).write()
            )
        except ExtractionError as e:
            raise NativeLibUnpackFailed(f"Failed to unpack {self.config.nativelib.name}: {e}") from e
        if self.config.verbose:
            state = "unpacked" if refreshed else "up to date"
            print(f"      Native library {state}: {self.config.lib_dir}")
        return RuntimeManifest.load(self.config.lib_dir)

    def command(self, source: RuntimeSource) -> List[str]:
        if source.is_cpp:
            compiler = self.config.clangpp
            flags = [CPP_STD_FLAG]
        else:
            compiler = self.config.clang
            flags = []
        flags += list(self.config.compile_options) + [RUNTIME_OPT_FLAG]
        return [str(compiler)] + flags + [
            "-c",
            str(source.path),
            "-o",
            str(source.object_path),
        ]

    def compile_source(self, source: RuntimeSource) -> ProcessResult:
        if self.config.verbose:
            print(f"      [runtime] {source.path.name}")
        return self.runner(self.command(source), cwd=self.config.workdir)

    def assemble(self, links: Iterable[str]) -> RuntimeLibrary:
        """
        Compile every runtime source this build needs.

        Args:
            links: Native library names required by reachable code

        Returns:
            RuntimeLibrary with the object files to link

        Raises:
            RuntimeCompileFailed: If any runtime source fails to compile
        """
        manifest = self.unpack()
        included, excluded = manifest.select(self.config.gc, links)

        removed = []
        for source in excluded:
            if source.object_path.exists():
                logger.debug("Removing excluded %s", source.object_path.name)
                source.object_path.unlink()
                removed.append(source.object_path)

        pending = [source for source in included if not source.object_path.exists()]
        logger.info(
            "Runtime library: %d sources, %d to compile, %d cached",
            len(included),
            len(pending),
            len(included) - len(pending),
        )

        run = run_parallel(self.compile_source, pending, self.config.jobs)
        failure = run.first_failure
        if failure is not None:
            raise RuntimeCompileFailed(
                f"Failed to compile native library runtime code: {failure.item.path.name}",
                failure.result,
            )

        return RuntimeLibrary(
            lib_dir=self.config.lib_dir,
            objects=[source.object_path for source in included],
            compiled=[source.object_path for source in pending],
            removed=removed,
        )
