"""Unit tests for the final native link."""

from dataclasses import replace
from pathlib import Path

import pytest

from nativebuild.build.linker import FinalLinker, platform_libraries
from nativebuild.config import GarbageCollector
from nativebuild.errors import LinkFailed
from tests._fixtures.builders import FakeRunner


class TestPlatformLibraries:
    """Test cases for platform_libraries."""

    def test_linux(self):
        assert platform_libraries("Linux", "x86_64") == ["rt", "unwind", "unwind-x86_64"]

    @pytest.mark.parametrize("os_name", ["Darwin", "Mac OS X"])
    def test_macos(self, os_name):
        assert platform_libraries(os_name, "x86_64") == []

    def test_other_unix(self):
        assert platform_libraries("FreeBSD", "aarch64") == ["unwind", "unwind-aarch64"]


class TestFinalLinker:
    """Test cases for FinalLinker class."""

    APP = [Path("/work/main.ll.o"), Path("/work/pkg/util.ll.o")]
    RUNTIME = [Path("/work/lib/gc/immix/heap.c.o"), Path("/work/lib/main.cpp.o")]

    def test_command_layout(self, config):
        cmd = FinalLinker(config).command(self.APP, self.RUNTIME, {"z", "pthread"})

        assert cmd == [
            str(config.clangpp),
            "-o",
            str(config.workdir / "out"),
            "-lrt",
            "-lunwind",
            "-lunwind-x86_64",
            "-lpthread",
            "-lz",
            "-L/usr/local/lib",
            "-target",
            "x86_64-pc-linux-gnu",
            "/work/main.ll.o",
            "/work/pkg/util.ll.o",
            "/work/lib/gc/immix/heap.c.o",
            "/work/lib/main.cpp.o",
        ]

    def test_boehm_links_gc_last(self, config):
        linker = FinalLinker(replace(config, gc=GarbageCollector.BOEHM))
        assert linker.libraries(["z"]) == ["rt", "unwind", "unwind-x86_64", "z", "gc"]

    def test_macos_has_no_platform_flags(self, config):
        linker = FinalLinker(replace(config, os_name="Darwin", target_triple="x86_64-apple-darwin16.0.0"))
        cmd = linker.command(self.APP, self.RUNTIME, [])

        assert not any(arg.startswith("-lunwind") or arg == "-lrt" for arg in cmd)
        assert cmd[cmd.index("-target") + 1] == "x86_64-apple-darwin16.0.0"

    def test_arch_from_triple(self, config):
        linker = FinalLinker(replace(config, target_triple="aarch64-unknown-linux-gnu"))
        assert "unwind-aarch64" in linker.libraries([])

    def test_link(self, config, runner):
        out = FinalLinker(config, runner).link(self.APP, self.RUNTIME, [])

        assert out == config.outpath
        assert out.exists()
        assert len(runner.link_commands()) == 1

    def test_link_failure(self, config):
        runner = FakeRunner(fail_on=["out"], stderr="undefined reference to `scalanative_init'")

        with pytest.raises(LinkFailed) as exc_info:
            FinalLinker(config, runner).link(self.APP, self.RUNTIME, [])

        assert "Failed to link native executable." in str(exc_info.value)
        assert "scalanative_init" in str(exc_info.value)
