"""
Unit tests for SourceMap placement and ExceptionTranslator diagnostics.
"""
import pytest

from jsworker.core.script.origin import ScriptOrigin
from jsworker.core.script.translator import ExceptionTranslator, SourceMap
from jsworker.engine.base import EngineFault, FaultKind
from jsworker.exceptions import CompileError, RuntimeFault, TerminationRequestedError


@pytest.fixture
def source_map():
    return SourceMap()


@pytest.fixture
def translator(source_map):
    return ExceptionTranslator(source_map, "<input>")


class TestSourceMap:
    def test_first_unit_is_not_padded(self, source_map):
        padded, unit = source_map.place(ScriptOrigin(script_name="a.js"), "one\ntwo")
        assert padded == "one\ntwo"
        assert unit.first_line == 1
        assert unit.last_line == 2

    def test_units_occupy_disjoint_ranges(self, source_map):
        source_map.place(ScriptOrigin(script_name="a.js"), "one\ntwo")
        padded, unit = source_map.place(ScriptOrigin(script_name="b.js"), "three")
        assert padded == "\n\nthree"
        assert unit.first_line == 3

    def test_resolve(self, source_map):
        source_map.place(ScriptOrigin(script_name="a.js"), "1\n2\n3")
        source_map.place(ScriptOrigin(script_name="b.js"), "1\n2")
        unit, line = source_map.resolve(5)
        assert unit.origin.script_name == "b.js"
        assert line == 2
        unit, line = source_map.resolve(2)
        assert unit.origin.script_name == "a.js"
        assert line == 2

    def test_resolve_unknown_line(self, source_map):
        assert source_map.resolve(1) is None
        source_map.place(ScriptOrigin(script_name="a.js"), "x")
        assert source_map.resolve(0) is None

    def test_resolve_past_end_clamps_to_newest_unit(self, source_map):
        source_map.place(ScriptOrigin(script_name="a.js"), "x\ny")
        unit, line = source_map.resolve(7)
        assert unit.origin.script_name == "a.js"
        assert line == 2

    def test_retains_newest_units_only(self):
        source_map = SourceMap(max_units=3)
        source_map.place(ScriptOrigin(script_name="bindings"), "prelude", internal=True)
        for i in range(10):
            source_map.place(ScriptOrigin(script_name=f"u{i}.js"), "a\nb")
        names = [unit.origin.script_name for unit in source_map.units]
        assert names == ["bindings", "u7.js", "u8.js", "u9.js"]
        # Line ranges keep advancing; evicted units are never reused.
        assert source_map.units[-1].first_line == 20

    def test_evicted_range_resolves_to_nothing(self):
        source_map = SourceMap(max_units=1)
        source_map.place(ScriptOrigin(script_name="old.js"), "1\n2")
        source_map.place(ScriptOrigin(script_name="new.js"), "3\n4")
        assert source_map.resolve(1) is None
        unit, line = source_map.resolve(4)
        assert unit.origin.script_name == "new.js"
        assert line == 2

    def test_fault_in_evicted_unit_falls_back_to_message(self):
        source_map = SourceMap(max_units=1)
        translator = ExceptionTranslator(source_map, "<input>")
        source_map.place(ScriptOrigin(script_name="old.js"), "function f() {\n  boom();\n}")
        source_map.place(ScriptOrigin(script_name="new.js"), "f();")
        fault = EngineFault(
            "ReferenceError: boom is not defined",
            ["    at f (<input>:2)", "    at <eval> (<input>:4)"],
        )
        diagnostic = translator.translate(fault)
        assert diagnostic.startswith("new.js:1\nf();\n")
        assert "    at f (<input>:2)" in diagnostic

    def test_display_position_applies_offsets(self, source_map):
        origin = ScriptOrigin(script_name="a.js", line_offset=5, column_offset=3)
        _, unit = source_map.place(origin, "x\ny")
        assert unit.display_position(1, 4) == (6, 7)
        # Column offset applies only to the first line.
        assert unit.display_position(2, 4) == (7, 4)
        assert unit.display_position(2, None) == (7, None)


class TestTranslate:
    def test_runtime_fault_with_stack(self, source_map, translator):
        source_map.place(ScriptOrigin(script_name="app.js"), "var a;\n  boom();\n")
        fault = EngineFault(
            "ReferenceError: boom is not defined",
            ["    at <eval> (<input>:2)"],
            FaultKind.RUNTIME,
        )
        assert translator.translate(fault) == (
            "app.js:2\n"
            "  boom();\n"
            "  ^^^^^^^\n"
            "ReferenceError: boom is not defined\n"
            "    at <eval> (app.js:2)\n"
        )

    def test_column_marks_token(self, source_map, translator):
        source_map.place(ScriptOrigin(script_name="app.js"), "var x = foo.bar;")
        fault = EngineFault("TypeError: oops", ["    at <eval> (<input>:1:9)"])
        diagnostic = translator.translate(fault)
        lines = diagnostic.split("\n")
        assert lines[0] == "app.js:1"
        assert lines[2] == "        ^^^"
        assert lines[4] == "    at <eval> (app.js:1:9)"

    def test_syntax_fault_omits_parse_frame(self, source_map, translator):
        source_map.place(ScriptOrigin(script_name="bad.js"), "var = ;")
        fault = EngineFault("SyntaxError: unexpected token", ["    at <input>:1"], FaultKind.SYNTAX)
        assert translator.translate(fault) == "bad.js:1\nvar = ;\n^^^^^^^\nSyntaxError: unexpected token\n"

    def test_no_position_gives_bare_message(self, translator):
        fault = EngineFault("plain string", [])
        assert translator.translate(fault) == "plain string\n"

    def test_unresolvable_frame_gives_bare_message(self, translator):
        fault = EngineFault("Error: x", ["    at native"])
        assert translator.translate(fault) == "Error: x\n"

    def test_internal_unit_is_skipped(self, source_map, translator):
        source_map.place(ScriptOrigin(script_name="internal"), "wrapper();", internal=True)
        source_map.place(ScriptOrigin(script_name="user.js"), "call();")
        fault = EngineFault(
            "Error: failed",
            ["    at check (<input>:1)", "    at <eval> (<input>:2)"],
        )
        diagnostic = translator.translate(fault)
        assert diagnostic.startswith("user.js:1\ncall();\n")
        assert "at check (internal:1)" in diagnostic

    def test_line_offset_in_header_and_frames(self, source_map, translator):
        source_map.place(ScriptOrigin(script_name="page.html", line_offset=40), "a();\nb();")
        fault = EngineFault("Error: b", ["    at <eval> (<input>:2)"])
        diagnostic = translator.translate(fault)
        assert diagnostic.startswith("page.html:42\nb();\n")
        assert "at <eval> (page.html:42)" in diagnostic


class TestToError:
    @pytest.mark.parametrize("kind, error_type", [
        (FaultKind.SYNTAX, CompileError),
        (FaultKind.RUNTIME, RuntimeFault),
        (FaultKind.OUT_OF_MEMORY, RuntimeFault),
        (FaultKind.INTERRUPTED, TerminationRequestedError),
    ])
    def test_error_type_by_kind(self, translator, kind, error_type):
        error = translator.to_error(EngineFault("Error: x", [], kind), worker_id=7)
        assert type(error) is error_type
        assert error.worker_id == 7
        assert str(error) == "Error: x\n"
