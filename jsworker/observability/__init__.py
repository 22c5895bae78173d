"""
jsworker Observability Module.

Provides OpenTelemetry-based metrics for monitoring worker lifecycles,
script loads and bridge traffic.
"""

from jsworker.observability.metrics import (
    # Initialization
    init_metrics,
    shutdown_metrics,
    is_initialized,
    get_meter_provider,
    get_meter,
    ExporterType,
    # Worker metrics
    record_worker_created,
    record_worker_disposed,
    record_load,
    record_message,
    # Context managers
    EntryTimer,
)

__all__ = [
    "init_metrics",
    "shutdown_metrics",
    "is_initialized",
    "get_meter_provider",
    "get_meter",
    "ExporterType",
    "record_worker_created",
    "record_worker_disposed",
    "record_load",
    "record_message",
    "EntryTimer",
]
