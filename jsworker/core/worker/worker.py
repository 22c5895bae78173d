"""
Worker: one isolated script execution context and its message bridge.

A worker's context is not reentrant and is bound to the thread that created
it, so every worker owns a single execution thread. Host calls are submitted
to that thread and run one at a time in submission order; calls into
different workers run in parallel.

A host callback invoked from script code already runs on the execution
thread. Calls it makes back into the same worker run inline (nested in the
current script call) instead of queueing behind it, which would deadlock.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from jsworker.core.bridge.bridge import MessageBridge, TERMINATED_MESSAGE
from jsworker.core.bridge.registry import (
    HostCallbacks,
    ReceiveMessageCallback,
    ReceiveSyncMessageCallback,
    WorkerRegistry,
    get_default_registry,
)
from jsworker.core.resource.heap import HeapStatistics
from jsworker.core.script.loader import ScriptLoader
from jsworker.core.script.origin import ScriptOrigin
from jsworker.core.script.translator import ExceptionTranslator, SourceMap
from jsworker.core.worker.base import WorkerConfig, get_worker_config
from jsworker.engine.base import Engine, EngineContext, EngineFault
from jsworker.engine.quickjs_engine import get_engine
from jsworker.exceptions import (
    CompileError,
    EngineError,
    HandlerMissingError,
    InvalidHandleError,
    ScriptError,
    TerminationRequestedError,
)
from jsworker.observability import metrics

logger = logging.getLogger(__name__)


def _check_text(name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be str, not {type(value).__name__}")
    # The engine passes text as C strings; a NUL would silently truncate it.
    if "\x00" in value:
        raise ValueError(f"{name} must not contain NUL characters")


class Worker:
    """A single isolated execution context.

    Args:
        on_message: Host callback for ``$send(msg)`` from script code.
        on_sync_message: Host callback for ``$sendSync(msg)``; its return
            value (a str) becomes the script-side result.
        config: Per-worker settings. Defaults to the global WorkerConfig.
        engine: Engine to create the context with. Defaults to the process engine.
        registry: Registry to route script messages through. Defaults to the
            process-wide registry.

    Example:
        with Worker(on_message=print) as worker:
            worker.load("main.js", '$recv(function (m) { $send("got " + m); });')
            worker.send("hello")
    """

    def __init__(
        self,
        on_message: Optional[ReceiveMessageCallback] = None,
        on_sync_message: Optional[ReceiveSyncMessageCallback] = None,
        config: Optional[WorkerConfig] = None,
        engine: Optional[Engine] = None,
        registry: Optional[WorkerRegistry] = None,
    ):
        self.config = config if config is not None else get_worker_config()
        self._engine = engine if engine is not None else get_engine()
        self._registry = registry if registry is not None else get_default_registry()
        self._id = self._registry.next_identity()

        self._terminating = threading.Event()
        self._state_lock = threading.Lock()
        self._disposed = False
        self._last_exception = ""
        self._thread_ident: Optional[int] = None

        self._context: Optional[EngineContext] = None
        self._translator: Optional[ExceptionTranslator] = None
        self._loader: Optional[ScriptLoader] = None
        self._bridge: Optional[MessageBridge] = None

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"jsworker-{self._id}")
        self._registry.register(self._id, HostCallbacks(on_message, on_sync_message))
        try:
            self._executor.submit(self._setup).result()
        except BaseException:
            self._registry.unregister(self._id)
            self._executor.shutdown(wait=False)
            raise

        metrics.record_worker_created()
        logger.info(f"Worker {self._id} created ({self._engine.name})")

    def _setup(self) -> None:
        self._thread_ident = threading.get_ident()
        self._context = self._engine.new_context(
            memory_limit=self.config.memory_limit,
            time_limit=self.config.time_limit,
            max_stack_size=self.config.max_stack_size,
        )
        if not self._context.set_interrupt_check(self._terminating.is_set):
            logger.debug(f"Worker {self._id}: termination only takes effect at bridge crossings")
        self._translator = ExceptionTranslator(SourceMap(), self._context.filename)
        self._loader = ScriptLoader(self._context, self._translator, self._id)
        self._bridge = MessageBridge(
            worker_id=self._id,
            context=self._context,
            translator=self._translator,
            registry=self._registry,
            terminating=self._terminating,
            record_failure=self._set_last_exception,
            names=self.config.binding_names,
            sentinels=self.config.sentinels,
            output=self.config.output,
        )
        try:
            self._bridge.install()
        except EngineFault as fault:
            self._context.close()
            raise EngineError(f"Failed to install reserved bindings: {fault.message}") from fault

    def _teardown(self) -> None:
        if self._bridge is not None:
            self._bridge.clear()
        if self._context is not None:
            self._context.close()
        self._bridge = None
        self._loader = None
        self._translator = None
        self._context = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        return self._id

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def last_exception(self) -> str:
        """Diagnostic of the most recent failing operation, or empty."""
        return self._last_exception

    def _set_last_exception(self, diagnostic: str) -> None:
        self._last_exception = diagnostic

    # ------------------------------------------------------------------
    # Entering the context
    # ------------------------------------------------------------------

    def _check_alive(self, operation: str) -> None:
        if self._disposed:
            raise InvalidHandleError(self._id, operation)

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any, script: bool = True) -> Any:
        """Run ``fn`` on the execution thread with exclusive use of the context."""
        self._check_alive(operation)
        if threading.get_ident() == self._thread_ident:
            return self._run(operation, fn, args, script)
        try:
            future = self._executor.submit(self._run, operation, fn, args, script)
        except RuntimeError as e:
            # Executor was shut down by a concurrent dispose().
            raise InvalidHandleError(self._id, operation) from e
        return future.result()

    def _run(self, operation: str, fn: Callable[..., Any], args: tuple, script: bool) -> Any:
        if self._context is None:
            raise InvalidHandleError(self._id, operation)
        with metrics.EntryTimer(operation):
            if not script:
                return fn(*args)
            if self._terminating.is_set():
                raise self._terminated(operation)
            try:
                result = fn(*args)
                if not self._terminating.is_set():
                    self._drain_microtasks()
            except Exception as e:
                if self._terminating.is_set() or isinstance(e, TerminationRequestedError):
                    raise self._terminated(operation, e) from e
                raise
            if self._terminating.is_set():
                raise self._terminated(operation)
            return result

    def _terminated(self, operation: str, cause: Optional[BaseException] = None) -> TerminationRequestedError:
        self._terminating.clear()
        logger.info(f"Worker {self._id}: {operation} terminated")
        if isinstance(cause, TerminationRequestedError):
            return cause
        if isinstance(cause, ScriptError):
            return TerminationRequestedError(cause.diagnostic, self._id)
        return TerminationRequestedError(f"Error: {TERMINATED_MESSAGE}\n", self._id)

    def _drain_microtasks(self) -> None:
        if not self.config.drain_microtasks:
            return
        try:
            self._context.run_pending_jobs()
        except EngineFault as fault:
            # No caller to report to: the call that queued the job already returned.
            diagnostic = self._translator.translate(fault)
            self._last_exception = diagnostic
            logger.warning(f"Worker {self._id}: uncaught fault in pending job\n{diagnostic}")

    # ------------------------------------------------------------------
    # Loading scripts
    # ------------------------------------------------------------------

    def load(self, script_name: str, code: str) -> ScriptOrigin:
        """Compile and run ``code`` attributed to ``script_name``."""
        return self.load_with_options(ScriptOrigin(script_name=script_name), code)

    def load_with_options(self, origin: Optional[ScriptOrigin], code: str) -> ScriptOrigin:
        """Compile and run ``code`` attributed to ``origin``.

        Units loaded into one worker share its global namespace.

        Returns:
            The origin the unit was attributed to, with a synthetic name
            filled in if ``origin`` had none.

        Raises:
            ValueError: ``code`` contains a NUL character, which the engine
                cannot represent.
            CompileError, RuntimeFault, TerminationRequestedError, InvalidHandleError
        """
        _check_text("code", code)
        try:
            resolved = self._call("load", self._do_load, origin, code)
        except ScriptError as e:
            self._last_exception = e.diagnostic
            if isinstance(e, CompileError):
                metrics.record_load("compile_error")
            elif isinstance(e, TerminationRequestedError):
                metrics.record_load("terminated")
            else:
                metrics.record_load("runtime_fault")
            raise
        metrics.record_load("ok")
        return resolved

    def _do_load(self, origin: Optional[ScriptOrigin], code: str) -> ScriptOrigin:
        return self._loader.load(origin, code)

    # ------------------------------------------------------------------
    # Message bridge, host -> script
    # ------------------------------------------------------------------

    def send(self, msg: str) -> None:
        """Deliver ``msg`` to the handler the script registered with ``$recv``.

        Blocks until the handler returns.

        Raises:
            HandlerMissingError: No handler has been registered.
            ValueError: ``msg`` contains a NUL character.
            RuntimeFault: The handler raised.
            TerminationRequestedError, InvalidHandleError
        """
        _check_text("msg", msg)
        try:
            self._call("send", self._do_send, msg)
        except HandlerMissingError as e:
            self._last_exception = e.message
            raise
        except ScriptError as e:
            self._last_exception = e.diagnostic
            raise

    def _do_send(self, msg: str) -> None:
        self._bridge.send(msg)

    def send_sync(self, msg: str) -> str:
        """Deliver ``msg`` to the ``$recvSync`` handler and return its reply.

        Script-side failures come back as ``"err: ..."`` sentinel texts rather
        than exceptions; see ``last_exception`` for the detail.

        Raises:
            ValueError: ``msg`` contains a NUL character.
            InvalidHandleError
        """
        _check_text("msg", msg)
        try:
            return self._call("send_sync", self._do_send_sync, msg)
        except TerminationRequestedError as e:
            self._last_exception = e.diagnostic
            return self.config.sentinels.terminated

    def _do_send_sync(self, msg: str) -> str:
        return self._bridge.send_sync(msg)

    # ------------------------------------------------------------------
    # Execution and resource control
    # ------------------------------------------------------------------

    def terminate_execution(self) -> None:
        """Interrupt script code running on this worker.

        Safe to call from any thread, including host callbacks. The running
        call (or, if none is running, the next one) fails with
        TerminationRequestedError. The engine aborts script code that never
        returns to the host, such as a busy loop; otherwise the call stops at
        its next crossing of the bridge or when it returns.
        """
        self._check_alive("terminate_execution")
        self._terminating.set()
        logger.info(f"Worker {self._id}: termination requested")

    def terminate_after(self, seconds: float) -> threading.Timer:
        """Request termination after ``seconds`` unless the returned timer is cancelled first.

        Example:
            timer = worker.terminate_after(2.0)
            try:
                worker.send(msg)
            finally:
                timer.cancel()
        """
        self._check_alive("terminate_after")
        timer = threading.Timer(seconds, self._terminate_if_alive)
        timer.daemon = True
        timer.start()
        return timer

    def _terminate_if_alive(self) -> None:
        if not self._disposed:
            self._terminating.set()
            logger.info(f"Worker {self._id}: deadline expired, termination requested")

    def low_memory_notification(self) -> None:
        """Ask the engine to free as much memory as it can."""
        self._call("low_memory_notification", self._do_collect, script=False)

    def _do_collect(self) -> None:
        self._context.collect_garbage()

    def idle_notification_deadline(self, deadline_in_seconds: float) -> bool:
        """Let the engine use idle time until ``deadline_in_seconds``.

        The deadline is an absolute ``time.monotonic()`` value. Returns True if
        the engine finished its housekeeping before the deadline.
        """
        return self._call("idle_notification_deadline", self._do_idle, deadline_in_seconds, script=False)

    def _do_idle(self, deadline_in_seconds: float) -> bool:
        if time.monotonic() >= deadline_in_seconds:
            return False
        self._context.collect_garbage()
        return time.monotonic() <= deadline_in_seconds

    def heap_statistics(self) -> HeapStatistics:
        return self._call("heap_statistics", self._do_heap_statistics, script=False)

    def _do_heap_statistics(self) -> HeapStatistics:
        return HeapStatistics.from_memory_usage(self._context.memory_usage())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """Tear down the context and remove the registry entry.

        Raises:
            InvalidHandleError: The worker was already disposed.
        """
        with self._state_lock:
            if self._disposed:
                raise InvalidHandleError(self._id, "dispose")
            self._disposed = True

        self._registry.unregister(self._id)
        if threading.get_ident() == self._thread_ident:
            # Called from a host callback: the script call in progress
            # finishes first, then the context is torn down.
            self._executor.submit(self._teardown)
            self._executor.shutdown(wait=False)
        else:
            # Stop any script still running so teardown is not stuck behind it.
            self._terminating.set()
            self._executor.submit(self._teardown).result()
            self._executor.shutdown(wait=True)

        metrics.record_worker_disposed()
        logger.info(f"Worker {self._id} disposed")

    def __enter__(self) -> "Worker":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._disposed:
            self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"<Worker id={self._id} {state}>"
