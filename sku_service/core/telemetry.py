"""
Telemetry bridge for the SKU service.

Wraps API, service and repository calls with OpenTelemetry spans and
records two kinds of metrics:
- sku.operations / sku.operation.duration: service and repository calls
- http.server.requests / http.server.duration: inbound HTTP requests

Recording is best-effort: a failing exporter or instrument never breaks
the call being observed. Without a configured OTLP endpoint the SDK
providers are still installed, so spans carry valid trace ids that are
reused as correlation ids in logs and problem details.
"""
import functools
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from opentelemetry import metrics, trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "sku_service"


class Telemetry:
    """Tracer plus the metric instruments used across the service."""

    def __init__(
        self,
        tracer_provider: Optional[Any] = None,
        meter_provider: Optional[Any] = None,
        version: str = "1.0.0",
    ):
        self.tracer_provider = tracer_provider
        self.meter_provider = meter_provider
        self.tracer = trace.get_tracer(INSTRUMENTATION_NAME, version, tracer_provider=tracer_provider)

        meter = metrics.get_meter(INSTRUMENTATION_NAME, version, meter_provider=meter_provider)
        self.operations = meter.create_counter(
            "sku.operations", unit="1", description="Service and repository calls"
        )
        self.operation_duration = meter.create_histogram(
            "sku.operation.duration", unit="ms", description="Duration of service and repository calls"
        )
        self.http_requests = meter.create_counter(
            "http.server.requests", unit="1", description="Inbound HTTP requests"
        )
        self.http_duration = meter.create_histogram(
            "http.server.duration", unit="ms", description="Duration of inbound HTTP requests"
        )

    @contextmanager
    def span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        kind: SpanKind = SpanKind.INTERNAL,
    ) -> Iterator[Span]:
        """Run the enclosed block inside a span and count it as an operation."""
        started = time.perf_counter()
        outcome = "ok"
        with self.tracer.start_as_current_span(
            name,
            kind=kind,
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield span
            except Exception as exc:
                outcome = "error"
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise
            finally:
                self.record_operation(name, outcome, (time.perf_counter() - started) * 1000)

    def record_operation(self, name: str, outcome: str, duration_ms: float) -> None:
        labels = {"operation": name, "outcome": outcome}
        try:
            self.operations.add(1, labels)
            self.operation_duration.record(duration_ms, labels)
        except Exception:
            logger.debug("Failed to record metrics for %s", name, exc_info=True)

    def record_request(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        labels = {"http.method": method, "http.route": route, "http.status_code": status_code}
        try:
            self.http_requests.add(1, labels)
            self.http_duration.record(duration_ms, labels)
        except Exception:
            logger.debug("Failed to record metrics for %s %s", method, route, exc_info=True)

    def shutdown(self) -> None:
        """Flush and stop the SDK providers, if any."""
        for provider in (self.tracer_provider, self.meter_provider):
            if provider is None or not hasattr(provider, "shutdown"):
                continue
            try:
                provider.shutdown()
            except Exception:
                logger.warning("Telemetry provider shutdown failed", exc_info=True)


_telemetry: Optional[Telemetry] = None


def get_telemetry() -> Telemetry:
    """Get the process-wide telemetry, creating a no-op one if unset."""
    global _telemetry
    if _telemetry is None:
        _telemetry = Telemetry()
    return _telemetry


def set_telemetry(telemetry: Optional[Telemetry]) -> None:
    global _telemetry
    _telemetry = telemetry


def current_span() -> Span:
    return trace.get_current_span()


def current_trace_id() -> Optional[str]:
    """Hex trace id of the active span, or None outside a recorded span."""
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return None
    return format(context.trace_id, "032x")


def traced(name: str, **attributes: Any) -> Callable:
    """Decorator wrapping an async callable in a telemetry span."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_telemetry().span(name, attributes or None):
                return await func(*args, **kwargs)

        return wrapper

    return decorator


def setup_telemetry(
    service_name: str,
    service_version: str,
    otlp_endpoint: Optional[str] = None,
    metric_export_interval_ms: int = 60000,
) -> Telemetry:
    """
    Install SDK tracer and meter providers and the process-wide Telemetry.

    Exporters are attached only when an OTLP endpoint is configured.
    """
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    resource = Resource.create({"service.name": service_name, "service.version": service_version})
    tracer_provider = TracerProvider(resource=resource)
    metric_readers = []

    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

        base = otlp_endpoint.rstrip("/")
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{base}/v1/traces")))
        metric_readers.append(
            PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=f"{base}/v1/metrics"),
                export_interval_millis=metric_export_interval_ms,
            )
        )
        logger.info("Exporting telemetry to %s", base)

    meter_provider = MeterProvider(resource=resource, metric_readers=metric_readers)
    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)

    telemetry = Telemetry(tracer_provider, meter_provider, service_version)
    set_telemetry(telemetry)
    return telemetry


__all__ = [
    "Telemetry",
    "current_span",
    "current_trace_id",
    "get_telemetry",
    "set_telemetry",
    "setup_telemetry",
    "traced",
]
