"""
Centralized configuration defaults for jsworker.

This module provides a single source of truth for the reserved binding names,
sentinel replies and engine limits used across the package.
"""
from dataclasses import dataclass
from typing import Dict


# Prefix for synthetic script names given to origins loaded without a name.
SCRIPT_NAME_PREFIX = "VM"

# Prefix shared by every soft-failure reply on the sync paths.
SENTINEL_PREFIX = "err: "

# Loaded units whose source text is kept per worker for fault diagnostics.
MAX_RETAINED_UNITS = 256


@dataclass(frozen=True)
class BindingNames:
    """Reserved globals installed into every worker's namespace."""
    print: str = "$print"
    recv: str = "$recv"
    recv_sync: str = "$recvSync"
    send: str = "$send"
    send_sync: str = "$sendSync"

    def to_dict(self) -> Dict[str, str]:
        return {
            "print": self.print,
            "recv": self.recv,
            "recv_sync": self.recv_sync,
            "send": self.send,
            "send_sync": self.send_sync,
        }


@dataclass(frozen=True)
class SentinelDefaults:
    """Fixed texts reported when a bridge path has nothing to deliver to."""
    recv_missing: str = "$recv not called"
    recv_sync_missing: str = SENTINEL_PREFIX + "$recvSync not called"
    non_string_reply: str = SENTINEL_PREFIX + "non-string return value"
    host_sync_missing: str = SENTINEL_PREFIX + "no host sync callback"
    host_sync_failed: str = SENTINEL_PREFIX + "host sync callback failed"
    terminated: str = SENTINEL_PREFIX + "execution terminated"
    nul_payload: str = SENTINEL_PREFIX + "message contains a NUL character"


@dataclass(frozen=True)
class EngineDefaults:
    """Default engine limits for a worker context."""
    memory_limit: int = 0  # bytes, 0 means no limit
    # Wall-clock seconds per outermost entry, 0 means no limit. Measured per
    # worker, so workers running in parallel do not share the budget.
    time_limit: float = 0.0
    max_stack_size: int = 0  # bytes, 0 keeps the engine default
    drain_microtasks: bool = True


# Global default instances
BINDING_NAMES = BindingNames()
SENTINELS = SentinelDefaults()
ENGINE_DEFAULTS = EngineDefaults()

