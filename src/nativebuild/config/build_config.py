"""
Build configuration record.

A BuildConfig is constructed once per build, after toolchain discovery has
run, and is then read by every stage. Stages never query the environment or
re-discover tools themselves; everything they need lives here.

Usage:
    config = BuildConfig(
        clang=Path("/usr/bin/clang"),
        clangpp=Path("/usr/bin/clang++"),
        target_triple="x86_64-pc-linux-gnu",
        entry="example.Main",
        classpath=(Path("nativelib.jar"), Path("classes")),
        workdir=Path("target/native"),
        nativelib=Path("nativelib.jar"),
    )
    release = dataclasses.replace(config, mode=Mode.RELEASE)
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple

import psutil


class GarbageCollector(Enum):
    """Garbage collector linked into the executable."""

    NONE = "none"
    BOEHM = "boehm"
    IMMIX = "immix"

    @property
    def links(self) -> List[str]:
        """Extra native libraries this collector requires at link time."""
        return list(_GC_LINKS.get(self, []))

    @classmethod
    def default(cls) -> "GarbageCollector":
        return cls.IMMIX

    @classmethod
    def from_name(cls, name: str) -> "GarbageCollector":
        """Look up a collector by its canonical name.

        Raises:
            ValueError: If the name is not a known collector
        """
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(gc.value for gc in cls)
            raise ValueError(f"Unknown garbage collector '{name}'. Valid: {valid}")


_GC_LINKS: Dict[GarbageCollector, List[str]] = {
    GarbageCollector.BOEHM: ["gc"],
}


class Mode(Enum):
    """Optimization mode handed to the IR optimizer."""

    DEBUG = "debug"
    RELEASE = "release"

    @classmethod
    def default(cls) -> "Mode":
        return cls.RELEASE

    @classmethod
    def from_name(cls, name: str) -> "Mode":
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown mode '{name}'. Valid: {valid}")


def default_jobs() -> int:
    """Number of parallel compile workers when none is configured."""
    return psutil.cpu_count(logical=True) or 1


@dataclass(frozen=True)
class BuildConfig:
    """Immutable configuration shared by every build stage."""

    clang: Path
    clangpp: Path
    target_triple: str
    entry: str
    workdir: Path
    nativelib: Path
    classpath: Tuple[Path, ...] = ()
    compile_options: Tuple[str, ...] = ()
    linking_options: Tuple[str, ...] = ()
    gc: GarbageCollector = GarbageCollector.IMMIX
    mode: Mode = Mode.RELEASE
    os_name: str = ""
    link_stubs: bool = True
    jobs: int = 1
    verbose: bool = False

    @property
    def outpath(self) -> Path:
        """Final executable location."""
        return self.workdir / "out"

    @property
    def lib_dir(self) -> Path:
        """Directory the runtime-support archive is unpacked into."""
        return self.workdir / "lib"

    @property
    def target_dir(self) -> Path:
        """Scratch directory for the target triple probe."""
        return self.workdir / "target"

    @property
    def arch(self) -> str:
        """CPU architecture component of the target triple."""
        return self.target_triple.split("-")[0]

    def describe(self) -> Dict[str, str]:
        """Flatten the configuration for verbose display."""
        return {
            "clang": str(self.clang),
            "clang++": str(self.clangpp),
            "target": self.target_triple,
            "gc": self.gc.value,
            "mode": self.mode.value,
            "entry": self.entry,
            "workdir": str(self.workdir),
            "nativelib": str(self.nativelib),
            "jobs": str(self.jobs),
        }
