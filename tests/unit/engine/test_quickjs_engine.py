"""
Unit tests for the QuickJS engine backend.
"""
import time

import pytest

from jsworker.engine import get_engine, set_engine
from jsworker.engine.base import EngineFault, FaultKind
from jsworker.engine.quickjs_engine import QuickJSContext, QuickJSEngine, fault_from_exception
from jsworker.exceptions import EngineError


class TestFaultFromException:
    def test_runtime_fault(self):
        exc = Exception("TypeError: not a function\n    at f (<input>:3)\n    at <eval> (<input>:5)\n")
        fault = fault_from_exception(exc)
        assert fault.message == "TypeError: not a function"
        assert fault.frames == ["    at f (<input>:3)", "    at <eval> (<input>:5)"]
        assert fault.kind == FaultKind.RUNTIME
        assert fault.has_stack

    def test_syntax_fault(self):
        fault = fault_from_exception(Exception("SyntaxError: unexpected token in expression: ';'\n    at <input>:2\n"))
        assert fault.kind == FaultKind.SYNTAX

    def test_syntax_error_thrown_at_runtime_is_runtime(self):
        fault = fault_from_exception(Exception("SyntaxError: bad json\n    at parse (native)\n    at <eval> (<input>:1)\n"))
        assert fault.kind == FaultKind.RUNTIME

    def test_undefined_stack_dropped(self):
        fault = fault_from_exception(Exception("plain string\nundefined"))
        assert fault.message == "plain string"
        assert fault.frames == []
        assert not fault.has_stack

    def test_interrupted(self):
        fault = fault_from_exception(Exception("InternalError: interrupted\n    at <eval> (<input>:1)\n"))
        assert fault.kind == FaultKind.INTERRUPTED

    def test_memory_error(self):
        fault = fault_from_exception(MemoryError())
        assert fault.kind == FaultKind.OUT_OF_MEMORY

    def test_empty_text_uses_type_name(self):
        fault = fault_from_exception(ValueError(""))
        assert fault.message == "ValueError"


class TestQuickJSContext:
    @pytest.fixture
    def context(self):
        context = QuickJSContext()
        yield context
        context.close()

    def test_eval(self, context):
        assert context.eval("1 + 2") == 3

    def test_eval_fault(self, context):
        with pytest.raises(EngineFault) as exc_info:
            context.eval("null.x")
        assert exc_info.value.message.startswith("TypeError")
        assert exc_info.value.kind == FaultKind.RUNTIME

    def test_eval_syntax_fault(self, context):
        with pytest.raises(EngineFault) as exc_info:
            context.eval("var = ;")
        assert exc_info.value.kind == FaultKind.SYNTAX

    def test_bind_and_call(self, context):
        context.bind("hostDouble", lambda x: x * 2)
        fn = context.eval("(function (v) { return hostDouble(v) + 1; })")
        assert context.call(fn, 20) == 41

    def test_call_fault(self, context):
        fn = context.eval("(function () { throw new RangeError('out'); })")
        with pytest.raises(EngineFault) as exc_info:
            context.call(fn)
        assert exc_info.value.message == "RangeError: out"

    def test_pending_jobs(self, context):
        context.eval("var seen = 0; Promise.resolve().then(function () { seen = 1; });")
        assert context.eval("seen") == 0
        assert context.run_pending_jobs() >= 1
        assert context.eval("seen") == 1

    def test_memory_usage_and_gc(self, context):
        context.collect_garbage()
        usage = context.memory_usage()
        assert usage["malloc_size"] > 0

    def test_time_limit_interrupts(self):
        context = QuickJSContext(time_limit=0.1)
        with pytest.raises(EngineFault) as exc_info:
            context.eval("while (true) {}")
        assert exc_info.value.kind == FaultKind.INTERRUPTED

    def test_time_limit_is_wall_clock_per_entry(self):
        context = QuickJSContext(time_limit=0.3)
        try:
            start = time.monotonic()
            with pytest.raises(EngineFault):
                context.eval("while (true) {}")
            assert time.monotonic() - start >= 0.29
            # A fresh entry gets a fresh deadline.
            assert context.eval("var n = 0; for (var i = 0; i < 1000; i++) n += i; n") == 499500
        finally:
            context.close()

    def test_interrupt_hook_installed(self, context):
        assert context.interruptible

    def test_interrupt_check_aborts_busy_loop(self, context):
        assert context.set_interrupt_check(lambda: True)
        with pytest.raises(EngineFault) as exc_info:
            context.eval("while (true) {}")
        assert exc_info.value.kind == FaultKind.INTERRUPTED

    def test_interrupt_check_polled_while_running(self, context):
        polls = []

        def check():
            polls.append(True)
            return len(polls) > 3

        context.set_interrupt_check(check)
        with pytest.raises(EngineFault):
            context.eval("for (;;) {}")
        assert len(polls) >= 4

    def test_usable_after_interrupt(self, context):
        stop = {"requested": True}
        context.set_interrupt_check(lambda: stop["requested"])
        with pytest.raises(EngineFault):
            context.eval("while (true) {}")
        stop["requested"] = False
        assert context.eval("1 + 1") == 2

    def test_closed_context_raises(self):
        context = QuickJSContext()
        context.close()
        with pytest.raises(EngineError):
            context.eval("1")


class TestEngine:
    def test_name_and_version(self):
        engine = QuickJSEngine()
        assert engine.name == "quickjs"
        assert engine.version()

    def test_new_context(self):
        context = QuickJSEngine().new_context(memory_limit=32 * 1024 * 1024)
        assert context.memory_usage()["malloc_limit"] == 32 * 1024 * 1024
        context.close()

    def test_set_engine_replaces_singleton(self):
        original = get_engine()
        replacement = QuickJSEngine()
        try:
            set_engine(replacement)
            assert get_engine() is replacement
        finally:
            set_engine(original)
