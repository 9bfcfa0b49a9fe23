"""
Intermediate representation stages: link, optimize, code generation.

The IR linker, optimizer and code generator are provided by an IRToolchain
implementation; this module only drives them and checks their results.
Implementations are passed in directly or registered as plugins under the
'nativebuild.ir_toolchains' entry-point group:

    [options.entry_points]
    nativebuild.ir_toolchains =
        mytools = mypackage.tools:MyToolchain
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any, List, Optional, Sequence, Set

from ..config import BuildConfig
from ..errors import IRToolchainNotFound, LinkError

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "nativebuild.ir_toolchains"

LL_SUFFIX = ".ll"
UNITS_RECORD = "units.json"


@dataclass
class LinkResult:
    """Output of IR linking.

    Attributes:
        defns: Every definition reachable from the entry point
        links: Native library names required by reachable code
        unresolved: Symbols that could not be resolved
        dyns: Dynamically dispatched method signatures, for the optimizer
    """

    defns: List[Any] = field(default_factory=list)
    links: Set[str] = field(default_factory=set)
    unresolved: Set[str] = field(default_factory=set)
    dyns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CompilationUnit:
    """One generated .ll file and the object file it compiles to."""

    path: Path

    @property
    def object_path(self) -> Path:
        return Path(str(self.path) + ".o")


class IRToolchain(ABC):
    """Interface for IR link/optimize/codegen implementations."""

    @abstractmethod
    def link(self, config: BuildConfig) -> LinkResult:
        """Link the classpath starting from config.entry."""
        pass

    @abstractmethod
    def optimize(self, config: BuildConfig, linked: LinkResult) -> Sequence[Any]:
        """Optimize the linked definitions."""
        pass

    @abstractmethod
    def codegen(self, config: BuildConfig, defns: Sequence[Any]) -> None:
        """Write one .ll file per compilation unit under config.workdir."""
        pass


def load_ir_toolchain(name: Optional[str] = None) -> IRToolchain:
    """Instantiate a registered IR toolchain.

    Args:
        name: Entry point name; the first registered one when omitted

    Raises:
        IRToolchainNotFound: If nothing (or nothing by that name) is registered
    """
    available = list(entry_points(group=ENTRY_POINT_GROUP))
    if name is not None:
        available = [ep for ep in available if ep.name == name]

    if not available:
        wanted = f"'{name}'" if name else "any"
        raise IRToolchainNotFound(
            f"No IR toolchain ({wanted}) registered under '{ENTRY_POINT_GROUP}'"
        )

    entry = available[0]
    logger.debug("Using IR toolchain %s (%s)", entry.name, entry.value)
    factory = entry.load()
    return factory()


def link_ir(config: BuildConfig, tools: IRToolchain) -> LinkResult:
    """Link the program's IR.

    Raises:
        LinkError: If any symbol is unresolved
    """
    result = tools.link(config)
    if result.unresolved:
        raise LinkError(result.unresolved)
    logger.info(
        "Linked %d definitions, native links: %s",
        len(result.defns),
        ", ".join(sorted(result.links)) or "none",
    )
    return result


def optimize_ir(config: BuildConfig, tools: IRToolchain, linked: LinkResult) -> List[Any]:
    return list(tools.optimize(config, linked))


def find_units(workdir: Path) -> List[CompilationUnit]:
    """All .ll files under the work directory, sorted by path."""
    return [CompilationUnit(path) for path in sorted(workdir.rglob(f"*{LL_SUFFIX}"))]


def read_unit_record(workdir: Path) -> List[Path]:
    """Units written by the previous code generation run in workdir."""
    record = workdir / UNITS_RECORD
    try:
        relative = json.loads(record.read_text())
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", record, e)
        return []
    return [workdir / name for name in relative if isinstance(name, str)]


def write_unit_record(workdir: Path, units: Sequence[CompilationUnit]) -> Path:
    record = workdir / UNITS_RECORD
    names = [unit.path.relative_to(workdir).as_posix() for unit in units]
    record.write_text(json.dumps(names, indent=2))
    return record


def generate_units(
    config: BuildConfig,
    tools: IRToolchain,
    defns: Sequence[Any],
) -> List[CompilationUnit]:
    """Run code generation and collect the compilation units it wrote.

    Units recorded by an earlier build are removed first. Other .ll files
    in the work directory are compiled too but never deleted; only units
    that code generation created or rewrote are recorded.
    """
    workdir = config.workdir
    workdir.mkdir(parents=True, exist_ok=True)
    for stale in read_unit_record(workdir):
        if stale.suffix == LL_SUFFIX and stale.is_file():
            logger.debug("Removing stale unit %s", stale)
            stale.unlink()

    before = {unit.path: unit.path.stat().st_mtime_ns for unit in find_units(workdir)}
    tools.codegen(config, defns)

    units = find_units(workdir)
    produced = [unit for unit in units if before.get(unit.path) != unit.path.stat().st_mtime_ns]
    write_unit_record(workdir, produced)
    logger.info("Generated %d compilation units", len(units))
    return units
