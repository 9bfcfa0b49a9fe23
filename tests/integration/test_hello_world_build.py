"""
Integration tests for a native build against a real clang toolchain.

The IR stages are replaced by a toolchain that writes a fixed hello-world
unit; everything after code generation (target probe, unit compilation,
runtime library, final link) runs the real compilers.
"""

import os
import shutil
import subprocess

import pytest

from nativebuild.build.linker import platform_libraries
from nativebuild.build.orchestrator import BuildOrchestrator
from nativebuild.build.process_runner import run_tool
from nativebuild.config import BuildConfig
from nativebuild.packages.toolchain import env_var_for
from tests._fixtures.builders import FakeIRToolchain, make_nativelib

MAIN_LL = """\
define i32 @main() {
entry:
  %0 = call i32 @nativebuild_runtime_ready()
  ret i32 %0
}

declare i32 @nativebuild_runtime_ready()
"""

RUNTIME_SOURCES = {
    "platform/ready.c": "int nativebuild_runtime_ready(void) { return 0; }\n",
    "gc/immix/heap.c": "int immix_heap;\n",
    "gc/boehm/gc.c": "#error boehm sources must not be compiled with immix\n",
    "optional/re2.cpp": "#error optional sources must not be compiled unless linked\n",
}


class HelloWorldToolchain(FakeIRToolchain):
    """Writes a single unit whose main calls into the runtime library."""

    def codegen(self, config: BuildConfig, defns) -> None:
        self.calls.append("codegen")
        (config.workdir / "main.ll").write_text(MAIN_LL)


def _has_clang() -> bool:
    return all(os.environ.get(env_var_for(name)) or shutil.which(name) for name in ("clang", "clang++"))


@pytest.mark.integration
@pytest.mark.skipif(not _has_clang(), reason="clang toolchain not installed")
class TestHelloWorldBuild:
    """Integration tests for a minimal native executable"""

    @pytest.fixture
    def orchestrator(self):
        return BuildOrchestrator(HelloWorldToolchain(), env=dict(os.environ))

    @pytest.fixture
    def classpath(self, tmp_path):
        return [make_nativelib(tmp_path / "ivy", RUNTIME_SOURCES), tmp_path / "classes"]

    @pytest.fixture
    def config(self, orchestrator, classpath, tmp_path):
        config = orchestrator.configure(classpath, tmp_path / "native", "example.Main", jobs=2)

        # Platform libraries (libunwind in particular) are not always installed
        probe = tmp_path / "probe.c"
        probe.write_text("int main(void) { return 0; }\n")
        flags = [f"-l{name}" for name in platform_libraries(config.os_name, config.arch)]
        result = run_tool([config.clangpp, "-xc", str(probe), "-o", str(tmp_path / "probe")] + flags)
        if not result.success:
            pytest.skip(f"platform libraries unavailable: {result.stderr.strip()}")
        return config

    def test_target_triple_detected(self, config):
        assert config.target_triple
        assert config.arch == config.target_triple.split("-")[0]
        assert (config.target_dir / "ll.probe").exists()

    def test_build_and_run(self, orchestrator, config):
        result = orchestrator.build(config)

        assert result.output == config.workdir / "out"
        assert result.output.exists()
        assert result.output.stat().st_size > 0

        completed = subprocess.run([str(result.output)], capture_output=True)
        assert completed.returncode == 0

    def test_rebuild_reuses_runtime(self, orchestrator, config):
        orchestrator.build(config)
        first_mtime = (config.lib_dir / "platform" / "ready.c.o").stat().st_mtime

        result = orchestrator.build(config)

        assert result.runtime.compiled == []
        assert (config.lib_dir / "platform" / "ready.c.o").stat().st_mtime == first_mtime
        assert result.output.exists()
