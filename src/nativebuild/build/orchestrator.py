"""
Build orchestration for native executables.

This module coordinates the whole pipeline, from a classpath and an entry
point to a native executable:
- Toolchain discovery (clang, clang++, target triple, llvm-config flags)
- IR link, optimize and code generation
- Parallel compilation of generated units
- Runtime library unpacking and compilation (cached)
- Final native link

Each stage is a function of the previous stage's result and is evaluated at
most once per BuildSession. Nothing is cached across sessions except what
lives on disk: the unpacked runtime library and its object files.
"""

import logging
import os
import platform
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from ..config import BuildConfig, GarbageCollector, Mode, default_jobs
from ..packages.toolchain import ToolchainDiscovery, discover_nativelib
from .ir import CompilationUnit, IRToolchain, LinkResult, generate_units, link_ir, load_ir_toolchain, optimize_ir
from .linker import FinalLinker
from .process_runner import ProcessResult
from .runtime_library import RuntimeLibrary, RuntimeLibraryAssembler
from .unit_compiler import UnitCompiler

logger = logging.getLogger(__name__)

T = TypeVar("T")

JOBS_ENV = "NATIVEBUILD_JOBS"

STAGES = [
    "Linking IR",
    "Optimizing",
    "Generating code",
    "Compiling units",
    "Compiling native library",
    "Linking native executable",
]


@dataclass
class BuildResult:
    """Result of a complete build."""

    output: Path
    units: List[CompilationUnit]
    app_objects: List[Path]
    runtime: RuntimeLibrary
    build_time: float
    stage_times: Dict[str, float] = field(default_factory=dict)


class BuildSession:
    """
    One build's stage graph.

    Stages are methods; calling one evaluates its dependencies first and
    memoizes every result for the lifetime of the session:

        linked -> optimized -> units -> app_objects --\\
           \\---------------------------> runtime -----+-> output
    """

    def __init__(
        self,
        config: BuildConfig,
        tools: IRToolchain,
        runner: Optional[Callable[..., ProcessResult]] = None,
    ):
        self.config = config
        self.tools = tools
        self.runner = runner
        self.stage_times: Dict[str, float] = {}
        self._results: Dict[str, Any] = {}

    def _once(self, stage: str, compute: Callable[[], T]) -> T:
        if stage not in self._results:
            index = STAGES.index(stage) + 1
            if self.config.verbose:
                print(f"[{index}/{len(STAGES)}] {stage}...")
            start = time.time()
            self._results[stage] = compute()
            self.stage_times[stage] = time.time() - start
            logger.info("%s took %.2fs", stage, self.stage_times[stage])
        return self._results[stage]

    def linked(self) -> LinkResult:
        return self._once("Linking IR", lambda: link_ir(self.config, self.tools))

    def optimized(self) -> List[Any]:
        linked = self.linked()
        return self._once("Optimizing", lambda: optimize_ir(self.config, self.tools, linked))

    def units(self) -> List[CompilationUnit]:
        defns = self.optimized()
        return self._once(
            "Generating code", lambda: generate_units(self.config, self.tools, defns)
        )

    def app_objects(self) -> List[Path]:
        units = self.units()
        compiler = UnitCompiler(self.config, self.runner)
        return self._once("Compiling units", lambda: compiler.compile_all(units))

    def runtime(self) -> RuntimeLibrary:
        linked = self.linked()
        assembler = RuntimeLibraryAssembler(self.config, self.runner)
        return self._once("Compiling native library", lambda: assembler.assemble(linked.links))

    def output(self) -> Path:
        linked = self.linked()
        app_objects = self.app_objects()
        runtime = self.runtime()
        linker = FinalLinker(self.config, self.runner)
        return self._once(
            "Linking native executable",
            lambda: linker.link(app_objects, runtime.objects, linked.links),
        )


class BuildOrchestrator:
    """
    Orchestrates a native build.

    Example usage:
        orchestrator = BuildOrchestrator(tools=my_ir_toolchain, verbose=True)
        out = orchestrator.link(
            classpath=[Path("nativelib.jar"), Path("classes")],
            workdir=Path("target/native"),
            main="example.Main",
        )
    """

    def __init__(
        self,
        tools: IRToolchain,
        verbose: bool = False,
        env: Optional[Mapping[str, str]] = None,
        discovery: Optional[ToolchainDiscovery] = None,
        runner: Optional[Callable[..., ProcessResult]] = None,
    ):
        """
        Initialize build orchestrator.

        Args:
            tools: IR link/optimize/codegen implementation
            verbose: Enable verbose output
            env: Environment variables (read from os.environ when omitted)
            discovery: Toolchain discovery (built from env when omitted)
            runner: External tool runner shared by all stages
        """
        self.tools = tools
        self.verbose = verbose
        self.env = dict(os.environ if env is None else env)
        self.runner = runner
        self.discovery = discovery or ToolchainDiscovery(env=self.env, runner=runner)

    def _jobs(self, jobs: Optional[int]) -> int:
        if jobs is not None:
            return max(1, jobs)
        override = self.env.get(JOBS_ENV)
        if override:
            try:
                return max(1, int(override))
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", JOBS_ENV, override)
        return default_jobs()

    def configure(
        self,
        classpath: Sequence[Path],
        workdir: Path,
        main: str,
        gc: Optional[GarbageCollector] = None,
        mode: Optional[Mode] = None,
        jobs: Optional[int] = None,
    ) -> BuildConfig:
        """
        Discover the toolchain and build the configuration record.

        Raises:
            NativeLibNotFound: If the runtime archive is not on the classpath
            ToolchainNotFound: If clang or clang++ cannot be found
            ToolchainProbeFailed: If the target triple cannot be detected
        """
        workdir = Path(workdir).absolute()
        workdir.mkdir(parents=True, exist_ok=True)
        classpath = [Path(entry) for entry in classpath]

        nativelib = discover_nativelib(classpath)
        clang = self.discovery.clang()
        clangpp = self.discovery.clangpp()

        config = BuildConfig(
            clang=clang,
            clangpp=clangpp,
            target_triple=self.discovery.target_triple(clang, workdir),
            entry=main,
            workdir=workdir,
            nativelib=nativelib,
            classpath=tuple(classpath),
            compile_options=tuple(self.discovery.compile_options()),
            linking_options=tuple(self.discovery.linking_options()),
            gc=gc or GarbageCollector.default(),
            mode=mode or Mode.default(),
            os_name=platform.system(),
            jobs=self._jobs(jobs),
            verbose=self.verbose,
        )

        if self.verbose:
            for key, value in config.describe().items():
                print(f"      {key}: {value}")

        return config

    def build(self, config: BuildConfig) -> BuildResult:
        """
        Run every stage for a configured build.

        Raises:
            NativeBuildError: If any stage fails
        """
        start_time = time.time()
        session = BuildSession(config, self.tools, self.runner)

        output = session.output()

        return BuildResult(
            output=output,
            units=session.units(),
            app_objects=session.app_objects(),
            runtime=session.runtime(),
            build_time=time.time() - start_time,
            stage_times=dict(session.stage_times),
        )

    def link(
        self,
        classpath: Sequence[Path],
        workdir: Path,
        main: str,
        gc: Optional[GarbageCollector] = None,
        mode: Optional[Mode] = None,
        jobs: Optional[int] = None,
    ) -> Path:
        config = self.configure(classpath, workdir, main, gc=gc, mode=mode, jobs=jobs)
        return self.build(config).output


def link(
    classpath: Sequence[Path],
    workdir: Path,
    main: str,
    tools: Optional[IRToolchain] = None,
    verbose: bool = False,
) -> Path:
    """Build a native executable and return its path.

    Args:
        classpath: Classpath, including the nativelib archive
        workdir: Work directory owned by this build
        main: Fully qualified entry point name
        tools: IR toolchain (first registered plugin when omitted)
        verbose: Print stage progress

    Returns:
        Path to <workdir>/out
    """
    orchestrator = BuildOrchestrator(tools or load_ir_toolchain(), verbose=verbose)
    return orchestrator.link(classpath, workdir, main)
