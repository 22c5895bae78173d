"""
Message bridge and the registry that routes script-initiated messages.
"""
from jsworker.core.bridge.registry import (
    HostCallbacks,
    WorkerRegistry,
    ReceiveMessageCallback,
    ReceiveSyncMessageCallback,
    get_default_registry,
)
from jsworker.core.bridge.bridge import MessageBridge, build_prelude

__all__ = [
    "HostCallbacks",
    "WorkerRegistry",
    "ReceiveMessageCallback",
    "ReceiveSyncMessageCallback",
    "get_default_registry",
    "MessageBridge",
    "build_prelude",
]
