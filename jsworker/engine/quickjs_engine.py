"""
QuickJS engine backend.

Each ``quickjs.Context`` owns its own runtime, so one context is one isolated
heap. The binding records its stack guard on the creating thread; callers
must keep a context on a single thread for its whole life.

The binding has no way to stop a call from another thread, and its own time
limit is measured with the process CPU clock, which every thread advances.
Where the installed binding's layout is known, contexts install their own
QuickJS interrupt handler through ctypes instead. It polls the worker's
termination flag and a wall-clock deadline for the outermost entry.
"""
import ctypes
import logging
import re
import threading
import time
from contextlib import contextmanager
from importlib import metadata
from typing import Any, Callable, Dict, Iterator, Optional

import _quickjs
import quickjs

from jsworker.engine.base import Engine, EngineContext, EngineFault, FaultKind
from jsworker.exceptions import EngineError

logger = logging.getLogger(__name__)

QUICKJS_FILENAME = "<input>"

# Parse errors are reported as a bare "at <input>:line" frame with no function.
_PARSE_FRAME = re.compile(r"^\s*at " + re.escape(QUICKJS_FILENAME) + r":\d+(?::\d+)?\s*$")

# Binding releases whose Context object stores its JSRuntime pointer right
# after the object header, with the runtime's opaque pointer set to the
# Context object itself.
INTERRUPT_HOOK_VERSIONS = ("1.19.",)
_RUNTIME_OFFSET = 0x10

# int (*)(JSRuntime *rt, void *opaque)
InterruptHandler = ctypes.CFUNCTYPE(ctypes.c_int, ctypes.c_void_p, ctypes.c_void_p)

_library: Optional[ctypes.CDLL] = None
_library_lock = threading.Lock()


def _binding_version() -> str:
    try:
        return metadata.version("quickjs")
    except metadata.PackageNotFoundError:
        return "unknown"


def _load_library() -> Optional[ctypes.CDLL]:
    """Open the binding's own extension module to reach the QuickJS C API."""
    global _library
    with _library_lock:
        if _library is not None:
            return _library
        if not _binding_version().startswith(INTERRUPT_HOOK_VERSIONS):
            return None
        try:
            library = ctypes.CDLL(_quickjs.__file__)
            set_handler = library.JS_SetInterruptHandler
            get_opaque = library.JS_GetRuntimeOpaque
        except (AttributeError, OSError) as e:
            logger.warning(f"QuickJS interrupt hook unavailable: {e}")
            return None
        set_handler.argtypes = [ctypes.c_void_p, ctypes.c_void_p, ctypes.c_void_p]
        set_handler.restype = None
        get_opaque.argtypes = [ctypes.c_void_p]
        get_opaque.restype = ctypes.c_void_p
        _library = library
        return _library


def _runtime_pointer(library: ctypes.CDLL, context: quickjs.Context) -> Optional[int]:
    runtime = ctypes.c_void_p.from_address(id(context) + _RUNTIME_OFFSET).value
    if not runtime or library.JS_GetRuntimeOpaque(runtime) != id(context):
        return None
    return runtime


def fault_from_exception(exc: BaseException) -> EngineFault:
    """Split a QuickJS exception's text into message, frames and kind."""
    if isinstance(exc, MemoryError):
        return EngineFault("InternalError: out of memory", kind=FaultKind.OUT_OF_MEMORY)

    lines = str(exc).splitlines()
    message = lines[0] if lines else type(exc).__name__
    # Values thrown without a stack property come through as "undefined".
    frames = [line for line in lines[1:] if line.strip() and line.strip() != "undefined"]

    if message == "InternalError: interrupted":
        kind = FaultKind.INTERRUPTED
    elif message == "InternalError: out of memory":
        kind = FaultKind.OUT_OF_MEMORY
    elif message.startswith("SyntaxError") and frames and all(_PARSE_FRAME.match(f) for f in frames):
        kind = FaultKind.SYNTAX
    else:
        kind = FaultKind.RUNTIME
    return EngineFault(message, frames, kind)


class QuickJSContext(EngineContext):
    filename = QUICKJS_FILENAME

    def __init__(self, memory_limit: int = 0, time_limit: float = 0.0, max_stack_size: int = 0):
        try:
            self._context: Optional[quickjs.Context] = quickjs.Context()
        except MemoryError as e:
            raise EngineError("Failed to allocate QuickJS context") from e
        if memory_limit > 0:
            self._context.set_memory_limit(memory_limit)
        if max_stack_size > 0:
            self._context.set_max_stack_size(max_stack_size)

        self._time_limit = time_limit
        self._deadline: Optional[float] = None
        self._depth = 0
        self._check: Optional[Callable[[], bool]] = None
        self._handler: Optional[Any] = None
        self._runtime: Optional[int] = None

        if not self._install_interrupt_handler() and time_limit > 0:
            # The binding re-installs its own handler on every call and
            # clears ours, so it is only used when ours is unavailable.
            logger.warning("QuickJS time limit falls back to the binding's CPU-clock limit")
            self._context.set_time_limit(time_limit)

    def _install_interrupt_handler(self) -> bool:
        library = _load_library()
        if library is None:
            return False
        runtime = _runtime_pointer(library, self._context)
        if runtime is None:
            logger.warning("QuickJS interrupt hook unavailable: unexpected Context layout")
            return False
        self._handler = InterruptHandler(self._interrupt)
        library.JS_SetInterruptHandler(runtime, ctypes.cast(self._handler, ctypes.c_void_p), None)
        self._runtime = runtime
        return True

    def _interrupt(self, runtime: int, opaque: int) -> int:
        # Runs on the context's thread whenever the engine polls for interrupts.
        if self._check is not None and self._check():
            return 1
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return 1
        return 0

    @property
    def interruptible(self) -> bool:
        return self._runtime is not None

    def set_interrupt_check(self, check: Callable[[], bool]) -> bool:
        self._check = check
        return self.interruptible

    @contextmanager
    def _entry(self) -> Iterator[None]:
        outermost = self._depth == 0
        if outermost and self._time_limit > 0:
            self._deadline = time.monotonic() + self._time_limit
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if outermost:
                self._deadline = None

    def _require(self) -> quickjs.Context:
        if self._context is None:
            raise EngineError("QuickJS context is closed")
        return self._context

    def eval(self, source: str) -> Any:
        context = self._require()
        try:
            with self._entry():
                return context.eval(source)
        except (quickjs.JSException, MemoryError) as e:
            raise fault_from_exception(e) from e

    def call(self, function: Any, *args: Any) -> Any:
        self._require()
        try:
            with self._entry():
                return function(*args)
        except (quickjs.JSException, MemoryError) as e:
            raise fault_from_exception(e) from e

    def bind(self, name: str, func: Callable[..., Any]) -> None:
        self._require().add_callable(name, func)

    def memory_usage(self) -> Dict[str, int]:
        return dict(self._require().memory())

    def collect_garbage(self) -> None:
        self._require().gc()

    def run_pending_jobs(self) -> int:
        context = self._require()
        count = 0
        try:
            with self._entry():
                while context.execute_pending_job():
                    count += 1
        except (quickjs.JSException, MemoryError) as e:
            raise fault_from_exception(e) from e
        return count

    def close(self) -> None:
        if self._runtime is not None:
            _load_library().JS_SetInterruptHandler(self._runtime, None, None)
            self._runtime = None
        self._handler = None
        self._check = None
        self._context = None


class QuickJSEngine(Engine):
    @property
    def name(self) -> str:
        return "quickjs"

    def version(self) -> str:
        return _binding_version()

    def new_context(
        self,
        memory_limit: int = 0,
        time_limit: float = 0.0,
        max_stack_size: int = 0,
    ) -> QuickJSContext:
        return QuickJSContext(
            memory_limit=memory_limit,
            time_limit=time_limit,
            max_stack_size=max_stack_size,
        )


_engine: Optional[Engine] = None
_engine_lock = threading.Lock()


def get_engine() -> Engine:
    """Get the process-wide engine, initializing it on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = QuickJSEngine()
            logger.info(f"Initialized engine: {_engine.name} {_engine.version()}")
        return _engine


def set_engine(engine: Engine) -> None:
    """Replace the process-wide engine."""
    global _engine
    with _engine_lock:
        _engine = engine
        logger.info(f"Engine configured: {engine.name}")
