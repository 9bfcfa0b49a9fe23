"""
Application unit compilation.

Compiles every generated .ll file to <file>.ll.o with clang++, in parallel.
Units are regenerated on every build, so there is no incremental skip here.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config import BuildConfig
from ..errors import UnitCompileFailed
from .ir import CompilationUnit
from .parallel import run_parallel
from .process_runner import ProcessResult, run_tool

logger = logging.getLogger(__name__)


class UnitCompiler:
    """
    Compiles application compilation units to object files.

    Example usage:
        compiler = UnitCompiler(config)
        objects = compiler.compile_all(units)
    """

    def __init__(
        self,
        config: BuildConfig,
        runner: Optional[Callable[..., ProcessResult]] = None,
    ):
        self.config = config
        self.runner = runner or run_tool

    def command(self, unit: CompilationUnit) -> List[str]:
        return [
            str(self.config.clangpp),
            "-c",
            str(unit.path),
            "-o",
            str(unit.object_path),
        ] + list(self.config.compile_options)

    def compile_unit(self, unit: CompilationUnit) -> ProcessResult:
        if self.config.verbose:
            print(f"      [unit] {unit.path.name}")
        return self.runner(self.command(unit), cwd=self.config.workdir)

    def compile_all(self, units: Sequence[CompilationUnit]) -> List[Path]:
        """
        Compile all units and wait for every one of them.

        Args:
            units: Compilation units from code generation

        Returns:
            Object file paths, in unit order

        Raises:
            UnitCompileFailed: If any unit fails to compile
        """
        run = run_parallel(self.compile_unit, list(units), self.config.jobs)

        failure = run.first_failure
        if failure is not None:
            raise UnitCompileFailed(
                f"Failed to compile {failure.item.path.name}", failure.result
            )

        logger.info("Compiled %d units", len(units))
        return [unit.object_path for unit in units]
