"""
Custom exception hierarchy for jsworker.
"""
from typing import Optional, Dict, Any


class JSWorkerError(Exception):
    """Base exception for all jsworker errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class WorkerError(JSWorkerError):
    """Base exception for errors raised by a Worker."""
    pass


class EngineError(JSWorkerError):
    """The engine could not be initialized or a context could not be created."""
    pass


class ScriptError(WorkerError):
    """A fault raised by script code, carrying the translated diagnostic.

    ``str()`` is the diagnostic itself so hosts can surface it unchanged.
    """

    def __init__(self, diagnostic: str, worker_id: Optional[int] = None):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic
        self.worker_id = worker_id

    def __str__(self) -> str:
        return self.diagnostic


class CompileError(ScriptError):
    """Source text failed to compile."""
    pass


class RuntimeFault(ScriptError):
    """An uncaught fault escaped script execution."""
    pass


class TerminationRequestedError(ScriptError):
    """Script execution was interrupted by terminate_execution() or the engine time limit."""
    pass


class HandlerMissingError(WorkerError):
    def __init__(self, message: str, worker_id: int, kind: str):
        super().__init__(message, {"worker_id": worker_id, "kind": kind})
        self.worker_id = worker_id
        self.kind = kind


class NonTextReplyError(WorkerError):
    def __init__(self, worker_id: int, reply_type: str):
        super().__init__(
            f"Sync handler returned non-string value of type {reply_type}",
            {"worker_id": worker_id, "reply_type": reply_type},
        )
        self.worker_id = worker_id
        self.reply_type = reply_type


class InvalidHandleError(WorkerError):
    def __init__(self, worker_id: int, operation: Optional[str] = None):
        details = {"worker_id": worker_id}
        if operation:
            details["operation"] = operation
        super().__init__(f"Worker has been disposed: {worker_id}", details)
        self.worker_id = worker_id
        self.operation = operation
