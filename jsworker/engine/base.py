"""
Abstract base classes for the embedded script engine.

The worker layer only ever talks to an engine through these types, so the
binding that actually compiles and runs source text stays swappable.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class FaultKind(str, Enum):
    """Classification of a fault reported by an engine context."""
    SYNTAX = "syntax"
    RUNTIME = "runtime"
    INTERRUPTED = "interrupted"
    OUT_OF_MEMORY = "out_of_memory"


class EngineFault(Exception):
    """Raised by an engine context when script code faults.

    Args:
        message: First line of the fault, e.g. ``"TypeError: x is not a function"``.
        frames: Raw stack frame lines as reported by the engine, innermost first.
        kind: What kind of fault this is.
    """

    def __init__(
        self,
        message: str,
        frames: Optional[List[str]] = None,
        kind: FaultKind = FaultKind.RUNTIME,
    ):
        super().__init__(message)
        self.message = message
        self.frames = frames or []
        self.kind = kind

    @property
    def has_stack(self) -> bool:
        return bool(self.frames)


class EngineContext(ABC):
    """One isolated heap and global namespace.

    Contexts are not thread-safe. Every method must be called from the thread
    that created the context.
    """

    # Resource name the engine stamps on positions it reports.
    filename: str = "<input>"

    @abstractmethod
    def eval(self, source: str) -> Any:
        """Compile and run source text in the global scope."""
        pass

    @abstractmethod
    def call(self, function: Any, *args: Any) -> Any:
        """Call a script function previously handed to the host."""
        pass

    @abstractmethod
    def bind(self, name: str, func: Callable[..., Any]) -> None:
        """Expose a host callable as a global."""
        pass

    @abstractmethod
    def memory_usage(self) -> Dict[str, int]:
        """Get raw heap usage counters."""
        pass

    @abstractmethod
    def collect_garbage(self) -> None:
        pass

    @abstractmethod
    def run_pending_jobs(self) -> int:
        """Run queued promise jobs. Returns the number of jobs executed."""
        pass

    def set_interrupt_check(self, check: Callable[[], bool]) -> bool:
        """Abort running script code as soon as ``check()`` returns True.

        The engine polls ``check`` on the context's thread while script code
        runs; an aborted call faults with kind ``interrupted``. Returns False
        if this engine cannot interrupt code that never returns to the host.
        """
        return False

    @abstractmethod
    def close(self) -> None:
        """Release the context. No method may be called afterwards."""
        pass


class Engine(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def version(self) -> str:
        pass

    @abstractmethod
    def new_context(
        self,
        memory_limit: int = 0,
        time_limit: float = 0.0,
        max_stack_size: int = 0,
    ) -> EngineContext:
        """Create a new isolated context with the given limits (0 means unset)."""
        pass
