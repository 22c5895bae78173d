"""
Core worker runtime: lifecycle, message bridge, script loading and diagnostics.
"""
from jsworker.core.worker import Worker, WorkerConfig, set_worker_config, get_worker_config
from jsworker.core.bridge import HostCallbacks, WorkerRegistry, MessageBridge, get_default_registry
from jsworker.core.script import ScriptOrigin, ScriptLoader, ExceptionTranslator, SourceMap
from jsworker.core.resource import HeapStatistics

__all__ = [
    "Worker",
    "WorkerConfig",
    "set_worker_config",
    "get_worker_config",
    "HostCallbacks",
    "WorkerRegistry",
    "MessageBridge",
    "get_default_registry",
    "ScriptOrigin",
    "ScriptLoader",
    "ExceptionTranslator",
    "SourceMap",
    "HeapStatistics",
]
