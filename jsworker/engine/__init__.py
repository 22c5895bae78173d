"""
Engine backends for jsworker.

The engine compiles and runs script source; everything above it (workers,
the message bridge, diagnostics) only uses the abstract types in base.py.
"""
from jsworker.engine.base import Engine, EngineContext, EngineFault, FaultKind
from jsworker.engine.quickjs_engine import (
    QuickJSEngine,
    QuickJSContext,
    get_engine,
    set_engine,
)

__all__ = [
    "Engine",
    "EngineContext",
    "EngineFault",
    "FaultKind",
    "QuickJSEngine",
    "QuickJSContext",
    "get_engine",
    "set_engine",
]
