"""
jsworker - Isolated JavaScript workers with a message bridge to the host.
"""
from typing import Optional

from jsworker.core import (
    Worker,
    WorkerConfig,
    set_worker_config,
    get_worker_config,
    ScriptOrigin,
    HeapStatistics,
)
from jsworker.core.bridge import ReceiveMessageCallback, ReceiveSyncMessageCallback
from jsworker.engine import get_engine
from jsworker.exceptions import (
    JSWorkerError,
    WorkerError,
    EngineError,
    ScriptError,
    CompileError,
    RuntimeFault,
    TerminationRequestedError,
    HandlerMissingError,
    NonTextReplyError,
    InvalidHandleError,
)

__version__ = "0.1.0"


def version() -> str:
    """Name and version of the embedded engine, e.g. ``"quickjs 1.19.4"``."""
    engine = get_engine()
    return f"{engine.name} {engine.version()}"


def create(
    on_message: Optional[ReceiveMessageCallback] = None,
    on_sync_message: Optional[ReceiveSyncMessageCallback] = None,
    config: Optional[WorkerConfig] = None,
) -> Worker:
    """Create a worker routed to the given host callbacks."""
    return Worker(on_message=on_message, on_sync_message=on_sync_message, config=config)


__all__ = [
    "version",
    "create",
    "Worker",
    "WorkerConfig",
    "set_worker_config",
    "get_worker_config",
    "ScriptOrigin",
    "HeapStatistics",
    "JSWorkerError",
    "WorkerError",
    "EngineError",
    "ScriptError",
    "CompileError",
    "RuntimeFault",
    "TerminationRequestedError",
    "HandlerMissingError",
    "NonTextReplyError",
    "InvalidHandleError",
]
