"""OpenTelemetry integration for contextkeeper.

Optional tracing and metrics for compaction and flush decisions. Disabled
unless OTEL_ENABLED=true. Recording helpers never raise into the caller.

Configuration:
  - OTEL_ENABLED: "true" to export
  - OTEL_EXPORTER_OTLP_ENDPOINT: collector endpoint (default http://localhost:4317)
  - OTEL_EXPORTER_OTLP_HEADERS: "key1=value1,key2=value2"
"""

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from contextkeeper.context.compaction import CompactionResult

logger = logging.getLogger(__name__)

SERVICE_NAME = "contextkeeper"

_tracer = None
_meter = None
_instruments: dict[str, Any] = {}
_initialized = False


@dataclass
class TelemetryConfig:
    """Configuration for OpenTelemetry export."""

    service_name: str = SERVICE_NAME
    service_version: str = "0.1.0"

    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    )
    export_interval_millis: int = 5000

    enabled: bool = field(
        default_factory=lambda: os.getenv("OTEL_ENABLED", "false").lower() == "true"
    )

    def uses_http(self) -> bool:
        """HTTP exporters for https endpoints, gRPC for local collectors."""
        return self.otlp_endpoint.startswith("https://")

    def get_otlp_headers(self) -> dict[str, str]:
        """Parse OTEL_EXPORTER_OTLP_HEADERS into a dict."""
        from urllib.parse import unquote

        headers = {}
        raw = unquote(os.getenv("OTEL_EXPORTER_OTLP_HEADERS", ""))
        for pair in raw.split(","):
            if "=" in pair:
                key, value = pair.split("=", 1)
                headers[key.strip()] = value.strip()
        return headers


class TelemetryManager:
    """Manages OpenTelemetry initialization and lifecycle."""

    def __init__(self, config: Optional[TelemetryConfig] = None):
        self.config = config or TelemetryConfig()
        self._provider = None
        self._meter_provider = None

    def init(self) -> bool:
        """Initialize tracing and metrics exporters."""
        global _tracer, _meter, _initialized

        if _initialized:
            logger.debug("Telemetry already initialized")
            return True

        if not self.config.enabled:
            logger.info("Telemetry disabled (set OTEL_ENABLED=true to enable)")
            return False

        try:
            from opentelemetry import metrics, trace
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.sdk.resources import SERVICE_NAME as RESOURCE_SERVICE_NAME
            from opentelemetry.sdk.resources import SERVICE_VERSION, Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor

            resource = Resource.create(
                {
                    RESOURCE_SERVICE_NAME: self.config.service_name,
                    SERVICE_VERSION: self.config.service_version,
                }
            )
            headers = self.config.get_otlp_headers()

            if self.config.uses_http():
                from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
                    OTLPMetricExporter,
                )
                from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                    OTLPSpanExporter,
                )

                span_exporter = OTLPSpanExporter(
                    endpoint=f"{self.config.otlp_endpoint}/v1/traces", headers=headers
                )
                metric_exporter = OTLPMetricExporter(
                    endpoint=f"{self.config.otlp_endpoint}/v1/metrics", headers=headers
                )
            else:
                from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                    OTLPMetricExporter,
                )
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                    OTLPSpanExporter,
                )

                span_exporter = OTLPSpanExporter(
                    endpoint=self.config.otlp_endpoint, headers=headers or None
                )
                metric_exporter = OTLPMetricExporter(
                    endpoint=self.config.otlp_endpoint, headers=headers or None
                )

            self._provider = TracerProvider(resource=resource)
            self._provider.add_span_processor(BatchSpanProcessor(span_exporter))
            trace.set_tracer_provider(self._provider)
            _tracer = trace.get_tracer(self.config.service_name)

            reader = PeriodicExportingMetricReader(
                metric_exporter,
                export_interval_millis=self.config.export_interval_millis,
            )
            self._meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
            metrics.set_meter_provider(self._meter_provider)
            _meter = metrics.get_meter(self.config.service_name)
            _instruments.clear()

            _initialized = True
            logger.info(f"Telemetry initialized (endpoint: {self.config.otlp_endpoint})")
            return True

        except ImportError as e:
            logger.error(f"OpenTelemetry exporter packages not installed: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to initialize telemetry: {e}", exc_info=True)
            return False

    def shutdown(self) -> None:
        """Shutdown OpenTelemetry providers."""
        global _initialized, _tracer, _meter

        if self._provider:
            self._provider.shutdown()
        if self._meter_provider:
            self._meter_provider.shutdown()

        _initialized = False
        _tracer = None
        _meter = None
        _instruments.clear()
        logger.info("Telemetry shutdown")

    def __enter__(self) -> "TelemetryManager":
        self.init()
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()


def init_telemetry(config: Optional[TelemetryConfig] = None) -> TelemetryManager:
    """Initialize telemetry with given config."""
    manager = TelemetryManager(config)
    manager.init()
    return manager


def get_tracer():
    """Get the global tracer (the API's no-op tracer until initialized)."""
    if _tracer is None:
        from opentelemetry import trace

        return trace.get_tracer(SERVICE_NAME)
    return _tracer


def get_meter():
    """Get the global meter (the API's no-op meter until initialized)."""
    if _meter is None:
        from opentelemetry import metrics

        return metrics.get_meter(SERVICE_NAME)
    return _meter


def _counter(name: str, description: str):
    if name not in _instruments:
        _instruments[name] = get_meter().create_counter(name, description=description)
    return _instruments[name]


def _histogram(name: str, description: str):
    if name not in _instruments:
        _instruments[name] = get_meter().create_histogram(name, description=description)
    return _instruments[name]


def record_compaction(result: "CompactionResult") -> None:
    """Record one compaction as a span plus counters."""
    try:
        attributes = {"strategy": result.strategy}
        with get_tracer().start_as_current_span("contextkeeper.compaction") as span:
            span.set_attribute("compaction.strategy", result.strategy)
            span.set_attribute("compaction.tokens_before", result.original_tokens)
            span.set_attribute("compaction.tokens_after", result.final_tokens)
            span.set_attribute("compaction.messages_summarized", result.messages_summarized)
            span.set_attribute("compaction.used_summarizer", result.used_summarizer)

        _counter("contextkeeper.compactions", "Compactions applied").add(1, attributes)
        saved = max(0, result.original_tokens - result.final_tokens)
        _histogram("contextkeeper.tokens_saved", "Estimated tokens removed per compaction").record(
            saved, attributes
        )
    except Exception as e:
        logger.debug(f"[Telemetry] Failed to record compaction: {e}")


def record_flush(history_tokens: int) -> None:
    """Record a memory flush trigger."""
    try:
        with get_tracer().start_as_current_span("contextkeeper.flush") as span:
            span.set_attribute("flush.history_tokens", history_tokens)
        _counter("contextkeeper.flushes", "Memory flush instructions injected").add(1)
    except Exception as e:
        logger.debug(f"[Telemetry] Failed to record flush: {e}")


def record_dedup(paragraphs_removed: int) -> None:
    """Record paragraphs stripped from a reply."""
    try:
        if paragraphs_removed:
            _counter(
                "contextkeeper.dedup_paragraphs", "Reply paragraphs removed as tool-output repeats"
            ).add(paragraphs_removed)
    except Exception as e:
        logger.debug(f"[Telemetry] Failed to record dedup: {e}")
