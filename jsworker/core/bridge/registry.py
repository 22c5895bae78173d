"""
Process-wide registry of host callbacks, keyed by worker identity.

Script-initiated messages only know which worker they came from; the registry
is how they find the host callbacks to deliver to. Entries live exactly as
long as their worker: registered at construction, removed at disposal.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from jsworker.utils.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

ReceiveMessageCallback = Callable[[str], None]
ReceiveSyncMessageCallback = Callable[[str], Any]


@dataclass(frozen=True)
class HostCallbacks:
    on_message: Optional[ReceiveMessageCallback] = None
    on_sync_message: Optional[ReceiveSyncMessageCallback] = None


class WorkerRegistry:
    """Thread-safe identity -> HostCallbacks map.

    Lookups take the read side of the lock, register/unregister the write
    side. A lookup racing an unregister either returns the entry (which the
    caller then owns a reference to) or None; it never sees a half-removed one.
    """

    def __init__(self):
        self._entries: Dict[int, HostCallbacks] = {}
        self._lock = ReadWriteLock()
        self._identities = itertools.count()
        self._identity_lock = threading.Lock()

    def next_identity(self) -> int:
        """Allocate a worker identity. Identities are never reused."""
        with self._identity_lock:
            return next(self._identities)

    def register(self, identity: int, callbacks: HostCallbacks) -> None:
        with self._lock.write_locked():
            if identity in self._entries:
                raise ValueError(f"Worker already registered: {identity}")
            self._entries[identity] = callbacks
        logger.debug(f"Registered worker {identity}")

    def lookup(self, identity: int) -> Optional[HostCallbacks]:
        with self._lock.read_locked():
            return self._entries.get(identity)

    def unregister(self, identity: int) -> bool:
        """Remove an entry. Returns False if it was not registered."""
        with self._lock.write_locked():
            removed = self._entries.pop(identity, None)
        if removed is None:
            logger.warning(f"Unregister of unknown worker {identity}")
            return False
        logger.debug(f"Unregistered worker {identity}")
        return True

    def __contains__(self, identity: int) -> bool:
        with self._lock.read_locked():
            return identity in self._entries

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)


_default_registry: Optional[WorkerRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> WorkerRegistry:
    """Get the process-wide registry, creating it on first use."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = WorkerRegistry()
        return _default_registry
