"""
Build pipeline components for nativebuild.

This module provides the staged native build:
- IR link, optimize and code generation (through an IRToolchain)
- Unit compilation (clang++, parallel)
- Runtime library assembly (clang/clang++, parallel, cached)
- Final native link
- Build orchestration (nativebuild.build.orchestrator)
"""

from .ir import CompilationUnit, IRToolchain, LinkResult
from .parallel import ParallelRun, run_parallel
from .process_runner import ProcessResult, run_tool

__all__ = [
    "CompilationUnit",
    "IRToolchain",
    "LinkResult",
    "ParallelRun",
    "run_parallel",
    "ProcessResult",
    "run_tool",
]
