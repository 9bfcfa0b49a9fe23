"""Builders and fakes shared by the nativebuild tests."""

import threading
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from nativebuild.build.ir import IRToolchain, LinkResult
from nativebuild.build.process_runner import ProcessResult
from nativebuild.config import BuildConfig, GarbageCollector

RUNTIME_SOURCES = {
    "gc/immix/heap.c": "int heap;",
    "gc/immix/alloc.c": "int alloc;",
    "gc/boehm/gc.c": "int boehm;",
    "gc/none/gc.c": "int none;",
    "gc/shared.c": "int shared;",
    "optional/re2.cpp": "int re2;",
    "optional/z.c": "int z;",
    "platform/time.c": "int time_;",
    "main.cpp": "int main_;",
}


class FakeRunner:
    """Stands in for run_tool: records commands and creates -o outputs."""

    def __init__(self, fail_on: Iterable[str] = (), stderr: str = "error: boom"):
        self.fail_on = set(fail_on)
        self.stderr = stderr
        self.commands: List[List[str]] = []
        self._lock = threading.Lock()

    def __call__(self, command: Sequence, cwd: Optional[Path] = None) -> ProcessResult:
        cmd = [str(arg) for arg in command]
        with self._lock:
            self.commands.append(cmd)

        if any(Path(arg).name in self.fail_on for arg in cmd):
            return ProcessResult(command=cmd, returncode=1, stdout="", stderr=self.stderr)

        if "-o" in cmd:
            output = Path(cmd[cmd.index("-o") + 1])
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text("object")

        return ProcessResult(command=cmd, returncode=0, stdout="", stderr="")

    def compiled(self, suffix: str) -> List[str]:
        """Names of inputs compiled with -c whose name ends with suffix."""
        names = []
        for cmd in self.commands:
            if "-c" in cmd:
                source = Path(cmd[cmd.index("-c") + 1]).name
                if source.endswith(suffix):
                    names.append(source)
        return sorted(names)

    def link_commands(self) -> List[List[str]]:
        return [cmd for cmd in self.commands if "-c" not in cmd]


class FakeIRToolchain(IRToolchain):
    """IR toolchain that writes fixed .ll files."""

    def __init__(
        self,
        units: Sequence[str] = ("main.ll", "pkg/util.ll"),
        links: Iterable[str] = (),
        unresolved: Iterable[str] = (),
    ):
        self.units = list(units)
        self.links = set(links)
        self.unresolved = set(unresolved)
        self.calls: List[str] = []

    def link(self, config: BuildConfig) -> LinkResult:
        self.calls.append("link")
        return LinkResult(
            defns=[config.entry],
            links=set(self.links),
            unresolved=set(self.unresolved),
        )

    def optimize(self, config: BuildConfig, linked: LinkResult):
        self.calls.append("optimize")
        return list(linked.defns)

    def codegen(self, config: BuildConfig, defns) -> None:
        self.calls.append("codegen")
        for unit in self.units:
            path = config.workdir / unit
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("; ModuleID = 'unit'\n")


def make_nativelib(directory: Path, sources: Optional[dict] = None) -> Path:
    """Write a nativelib jar holding runtime sources."""
    jar = directory / "scala-native" / "nativelib_native0.3_2.11-0.3.1.jar"
    jar.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(jar, "w") as zf:
        for name, content in (sources or RUNTIME_SOURCES).items():
            zf.writestr(name, content)
        zf.writestr("scala/scalanative/runtime/Intrinsics.nir", "nir")
    return jar


def make_config(workdir: Path, nativelib: Path, **overrides) -> BuildConfig:
    values = dict(
        clang=Path("/opt/llvm/bin/clang"),
        clangpp=Path("/opt/llvm/bin/clang++"),
        target_triple="x86_64-pc-linux-gnu",
        entry="example.Main",
        workdir=workdir,
        nativelib=nativelib,
        classpath=(nativelib,),
        compile_options=("-I/usr/local/include", "-Qunused-arguments"),
        linking_options=("-L/usr/local/lib",),
        gc=GarbageCollector.IMMIX,
        os_name="Linux",
        jobs=4,
    )
    values.update(overrides)
    return BuildConfig(**values)
