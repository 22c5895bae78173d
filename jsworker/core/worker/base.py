"""
Base types and configuration for workers.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, TextIO

from jsworker.config.defaults import (
    ENGINE_DEFAULTS,
    BindingNames,
    SentinelDefaults,
)

logger = logging.getLogger(__name__)


@dataclass
class WorkerConfig:
    """Per-worker settings.

    ``time_limit`` bounds each outermost entry (a load, send or send_sync,
    including the host callbacks it makes) in wall-clock seconds of
    ``time.monotonic()``, checked by the worker's own engine interrupt
    handler. Workers running in parallel each get the full limit. If the
    installed quickjs release does not allow installing that handler, the
    binding's own limit is used instead; it measures process CPU time
    (``clock()``), which all threads advance, so a limit can then fire early
    while other workers are busy.
    """
    memory_limit: int = ENGINE_DEFAULTS.memory_limit
    time_limit: float = ENGINE_DEFAULTS.time_limit
    max_stack_size: int = ENGINE_DEFAULTS.max_stack_size
    drain_microtasks: bool = ENGINE_DEFAULTS.drain_microtasks
    binding_names: BindingNames = field(default_factory=BindingNames)
    sentinels: SentinelDefaults = field(default_factory=SentinelDefaults)
    output: Optional[TextIO] = None  # $print target, stdout when unset


# Global worker configuration
_global_worker_config: Optional[WorkerConfig] = None


def set_worker_config(config: WorkerConfig) -> None:
    """Set the global worker configuration."""
    global _global_worker_config
    _global_worker_config = config
    logger.info(
        f"Worker defaults configured: memory_limit={config.memory_limit}, "
        f"time_limit={config.time_limit}s"
    )


def get_worker_config() -> WorkerConfig:
    """Get the global worker configuration, creating a default if none exists."""
    global _global_worker_config
    if _global_worker_config is None:
        _global_worker_config = WorkerConfig()
    return _global_worker_config
