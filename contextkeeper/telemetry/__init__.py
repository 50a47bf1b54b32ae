"""Telemetry layer for contextkeeper.

Optional OpenTelemetry export of compaction and flush events.
"""

from contextkeeper.telemetry.otel import (
    TelemetryConfig,
    TelemetryManager,
    get_meter,
    get_tracer,
    init_telemetry,
    record_compaction,
    record_dedup,
    record_flush,
)

__all__ = [
    "TelemetryConfig",
    "TelemetryManager",
    "init_telemetry",
    "get_tracer",
    "get_meter",
    "record_compaction",
    "record_flush",
    "record_dedup",
]
