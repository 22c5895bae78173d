"""
OpenTelemetry metrics for jsworker.

Counts worker lifecycle events, script loads and bridge traffic, and times
every entry into a worker context. Readers are pluggable (Prometheus, OTLP
over gRPC or HTTP, console). Until init_metrics() runs, every record helper
does nothing, so embedding hosts that never enable metrics pay no cost.
"""

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple
from enum import Enum


class ExporterType(str, Enum):
    """Supported metrics exporter types."""
    PROMETHEUS = "prometheus"
    OTLP = "otlp"
    OTLP_HTTP = "otlp_http"
    CONSOLE = "console"
    NONE = "none"  # metrics recorded only into caller-supplied readers


DEFAULT_EXPORT_INTERVAL_MILLIS = 10000

# Global state
_meter = None
_meter_provider = None
_initialized = False

# Metric instruments
_worker_counter = None
_worker_active = None
_load_counter = None
_message_counter = None
_entry_duration = None


def _create_reader(
    exporter_type: ExporterType,
    export_interval_millis: int = DEFAULT_EXPORT_INTERVAL_MILLIS,
    **kwargs: Any,
):
    """Build the metric reader for one exporter type, or None for NONE.

    Extra kwargs (endpoint, headers, ...) go to the OTLP exporter constructor.
    Exporter packages are imported lazily; they live in the "metrics" extra.
    """
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

    if exporter_type == ExporterType.NONE:
        return None

    if exporter_type == ExporterType.PROMETHEUS:
        from opentelemetry.exporter.prometheus import PrometheusMetricReader
        return PrometheusMetricReader()

    if exporter_type == ExporterType.OTLP:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
        exporter = OTLPMetricExporter(**kwargs)
    elif exporter_type == ExporterType.OTLP_HTTP:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        exporter = OTLPMetricExporter(**kwargs)
    elif exporter_type == ExporterType.CONSOLE:
        from opentelemetry.sdk.metrics.export import ConsoleMetricExporter
        exporter = ConsoleMetricExporter()
    else:
        raise ValueError(f"Unknown exporter type: {exporter_type}")

    return PeriodicExportingMetricReader(exporter, export_interval_millis=export_interval_millis)


def _collect_readers(
    exporter_type: str | ExporterType,
    exporter_kwargs: Dict[str, Any],
    additional_exporters: Optional[Sequence[Tuple[str | ExporterType, Dict[str, Any]]]],
) -> List:
    readers = []
    for exp_type, exp_kwargs in [(exporter_type, exporter_kwargs), *(additional_exporters or [])]:
        reader = _create_reader(ExporterType(exp_type), **exp_kwargs)
        if reader is not None:
            readers.append(reader)
    return readers


def _create_instruments(meter) -> None:
    global _worker_counter, _worker_active, _load_counter, _message_counter, _entry_duration

    _worker_counter = meter.create_counter(
        name="jsworker_worker_total",
        description="Total number of workers by lifecycle event",
        unit="1",
    )
    _worker_active = meter.create_up_down_counter(
        name="jsworker_worker_active",
        description="Number of workers not yet disposed",
        unit="1",
    )
    _load_counter = meter.create_counter(
        name="jsworker_load_total",
        description="Total number of script loads by outcome",
        unit="1",
    )
    _message_counter = meter.create_counter(
        name="jsworker_message_total",
        description="Total number of bridge messages by direction and outcome",
        unit="1",
    )
    _entry_duration = meter.create_histogram(
        name="jsworker_entry_duration_seconds",
        description="Time spent inside a worker context per operation",
        unit="s",
    )


def init_metrics(
    service_name: str = "jsworker",
    exporter_type: str | ExporterType = ExporterType.PROMETHEUS,
    additional_exporters: Optional[Sequence[Tuple[str | ExporterType, Dict[str, Any]]]] = None,
    metric_readers: Optional[List] = None,
    **exporter_kwargs: Any,
):
    """
    Start recording jsworker metrics.

    Calling it again while initialized returns the existing provider.

    Args:
        service_name: service.name resource attribute
        exporter_type: Primary exporter ("prometheus", "otlp", "otlp_http", "console", "none")
        additional_exporters: (exporter_type, kwargs) pairs for further exporters
        metric_readers: Ready-made readers to attach as well, e.g. an
            InMemoryMetricReader in tests
        **exporter_kwargs: Passed to the primary exporter (endpoint, headers,
            export_interval_millis)

    Returns:
        The jsworker MeterProvider. It is not installed as the global
        OpenTelemetry provider; the host keeps control of its own.

    Example:
        init_metrics(exporter_type="otlp", endpoint="http://localhost:4317")
    """
    global _meter, _meter_provider, _initialized

    if _initialized:
        return _meter_provider

    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.resources import Resource, SERVICE_NAME

    readers = _collect_readers(exporter_type, exporter_kwargs, additional_exporters)
    readers.extend(metric_readers or [])

    _meter_provider = MeterProvider(
        resource=Resource.create({SERVICE_NAME: service_name}),
        metric_readers=readers,
    )
    _meter = _meter_provider.get_meter("jsworker.metrics")
    _create_instruments(_meter)

    _initialized = True
    return _meter_provider


def shutdown_metrics() -> None:
    """Shutdown the meter provider and flush metrics."""
    global _meter, _meter_provider, _initialized
    global _worker_counter, _worker_active, _load_counter, _message_counter, _entry_duration
    if _meter_provider is not None:
        _meter_provider.shutdown()
    _meter = None
    _meter_provider = None
    _initialized = False
    _worker_counter = None
    _worker_active = None
    _load_counter = None
    _message_counter = None
    _entry_duration = None


def is_initialized() -> bool:
    """Check if metrics have been initialized."""
    return _initialized


def get_meter_provider():
    """Get the current meter provider."""
    return _meter_provider


def get_meter():
    """Get the current meter instance."""
    return _meter


# =============================================================================
# Worker Metrics Helper Functions
# =============================================================================


def record_worker_created() -> None:
    if _worker_counter is not None:
        _worker_counter.add(1, {"event": "created"})
    if _worker_active is not None:
        _worker_active.add(1)


def record_worker_disposed() -> None:
    if _worker_counter is not None:
        _worker_counter.add(1, {"event": "disposed"})
    if _worker_active is not None:
        _worker_active.add(-1)


def record_load(outcome: str) -> None:
    """Record a script load ("ok", "compile_error", "runtime_fault", "terminated")."""
    if _load_counter is not None:
        _load_counter.add(1, {"outcome": outcome})


def record_message(direction: str, outcome: str) -> None:
    """Record one message crossing the bridge."""
    if _message_counter is not None:
        _message_counter.add(1, {"direction": direction, "outcome": outcome})


# =============================================================================
# Context Managers
# =============================================================================


class EntryTimer:
    """Context manager for timing one entry into a worker context."""

    def __init__(self, operation: str):
        self.operation = operation
        self.start_time: Optional[float] = None

    def __enter__(self) -> "EntryTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None or _entry_duration is None:
            return
        duration = time.time() - self.start_time
        status = "error" if exc_type is not None else "ok"
        _entry_duration.record(duration, {"operation": self.operation, "status": status})
