"""Unit tests for the IR link, optimize and codegen stages."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from nativebuild.build.ir import (
    ENTRY_POINT_GROUP,
    UNITS_RECORD,
    CompilationUnit,
    find_units,
    generate_units,
    link_ir,
    load_ir_toolchain,
    optimize_ir,
    read_unit_record,
)
from nativebuild.errors import IRToolchainNotFound, LinkError
from tests._fixtures.builders import FakeIRToolchain


class TestCompilationUnit:
    """Test cases for CompilationUnit."""

    def test_object_path(self):
        unit = CompilationUnit(Path("/work/pkg/util.ll"))
        assert unit.object_path == Path("/work/pkg/util.ll.o")


class TestLinkIR:
    """Test cases for link_ir."""

    def test_link_success(self, config):
        tools = FakeIRToolchain(links=["z"])

        linked = link_ir(config, tools)

        assert linked.links == {"z"}
        assert linked.defns == ["example.Main"]

    def test_unresolved_symbols(self, config):
        tools = FakeIRToolchain(unresolved=["foo.Bar", "a.Baz"])

        with pytest.raises(LinkError) as exc_info:
            link_ir(config, tools)

        assert str(exc_info.value) == "unable to link: a.Baz, foo.Bar"
        assert exc_info.value.unresolved == ["a.Baz", "foo.Bar"]

    def test_optimize_returns_list(self, config):
        tools = FakeIRToolchain()
        linked = link_ir(config, tools)

        assert optimize_ir(config, tools, linked) == ["example.Main"]
        assert tools.calls == ["link", "optimize"]


class TestGenerateUnits:
    """Test cases for code generation."""

    def test_find_units_sorted(self, workdir):
        for name in ("z.ll", "a.ll", "pkg/m.ll", "lib/skip.c", "target/ll.probe"):
            path = workdir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("")

        units = find_units(workdir)

        assert [unit.path.relative_to(workdir).as_posix() for unit in units] == ["a.ll", "pkg/m.ll", "z.ll"]

    def test_generate_units(self, config):
        tools = FakeIRToolchain(units=["main.ll", "pkg/util.ll"])

        units = generate_units(config, tools, [])

        assert [unit.path.name for unit in units] == ["main.ll", "util.ll"]
        assert tools.calls == ["codegen"]

    def test_stale_units_removed(self, config):
        generate_units(config, FakeIRToolchain(units=["old/gone.ll", "main.ll"]), [])
        stale = config.workdir / "old" / "gone.ll"
        assert stale.exists()

        units = generate_units(config, FakeIRToolchain(units=["main.ll"]), [])

        assert not stale.exists()
        assert [unit.path.name for unit in units] == ["main.ll"]

    def test_unrecorded_ll_files_survive(self, config):
        hand_written = config.workdir / "notes" / "hand_written.ll"
        hand_written.parent.mkdir(parents=True)
        hand_written.write_text("; kept")

        generate_units(config, FakeIRToolchain(units=["main.ll"]), [])
        units = generate_units(config, FakeIRToolchain(units=["main.ll"]), [])

        assert hand_written.read_text() == "; kept"
        assert hand_written in [unit.path for unit in units]
        assert read_unit_record(config.workdir) == [config.workdir / "main.ll"]

    def test_unreadable_record_ignored(self, config):
        config.workdir.mkdir(parents=True, exist_ok=True)
        (config.workdir / UNITS_RECORD).write_text("{not json")
        leftover = config.workdir / "leftover.ll"
        leftover.write_text("; unknown origin")

        generate_units(config, FakeIRToolchain(units=["main.ll"]), [])

        assert leftover.exists()
        assert read_unit_record(config.workdir) == [config.workdir / "main.ll"]



class TestLoadIRToolchain:
    """Test cases for plugin discovery."""

    def _entry(self, name, instance):
        entry = Mock()
        entry.name = name
        entry.value = f"plugin:{name}"
        entry.load.return_value = lambda: instance
        return entry

    @patch("nativebuild.build.ir.entry_points")
    def test_first_registered(self, mock_entry_points):
        first, second = FakeIRToolchain(), FakeIRToolchain()
        mock_entry_points.return_value = [self._entry("a", first), self._entry("b", second)]

        assert load_ir_toolchain() is first
        mock_entry_points.assert_called_once_with(group=ENTRY_POINT_GROUP)

    @patch("nativebuild.build.ir.entry_points")
    def test_by_name(self, mock_entry_points):
        first, second = FakeIRToolchain(), FakeIRToolchain()
        mock_entry_points.return_value = [self._entry("a", first), self._entry("b", second)]

        assert load_ir_toolchain("b") is second

    @patch("nativebuild.build.ir.entry_points")
    def test_nothing_registered(self, mock_entry_points):
        mock_entry_points.return_value = []

        with pytest.raises(IRToolchainNotFound, match=ENTRY_POINT_GROUP):
            load_ir_toolchain()

    @patch("nativebuild.build.ir.entry_points")
    def test_unknown_name(self, mock_entry_points):
        mock_entry_points.return_value = [self._entry("a", FakeIRToolchain())]

        with pytest.raises(IRToolchainNotFound, match="'missing'"):
            load_ir_toolchain("missing")
