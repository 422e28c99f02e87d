"""OpenTelemetry wiring for the gateway.

Spans cover one protocol request, one chat turn and every model/tool step
inside it. Counters track session churn and chat stream outcomes.

``configure_opentelemetry`` installs the SDK providers once per process; until
it runs, the API's no-op providers make every span and counter free.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor

logger = logging.getLogger("agent_gateway")

# name → description; anything else is created on first use without one
GATEWAY_COUNTERS: Dict[str, str] = {
    "sessions_created": "Protocol sessions registered after a successful initialize",
    "sessions_closed": "Protocol sessions removed from the registry",
    "chat_streams": "Chat event feeds opened",
    "stream_failures": "Chat event feeds that ended with an error event",
    "engine_init_failures": "Failed attempts to construct the execution engine",
    "engine_rebuilds": "Engines replaced after their tool connection dropped",
}

_provider_installed = False


def _trace_endpoint(endpoint: str) -> str:
    """Accept ``host:port`` or a collector base URL; return the traces URL."""
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    if not endpoint.endswith("/v1/traces"):
        endpoint = endpoint.rstrip("/") + "/v1/traces"
    return endpoint


def configure_opentelemetry(
    service_name: str = "agent-gateway",
    otlp_trace_endpoint: Optional[str] = None,
    service_version: Optional[str] = None,
    export_metrics: bool = False,
) -> None:
    """Install tracer and meter providers. Later calls are ignored."""
    global _provider_installed
    if _provider_installed:
        logger.debug("OpenTelemetry already configured")
        return

    attributes = {"service.name": service_name}
    if service_version:
        attributes["service.version"] = service_version
    resource = Resource.create(attributes)

    tracer_provider = TracerProvider(resource=resource)
    if otlp_trace_endpoint:
        endpoint = _trace_endpoint(otlp_trace_endpoint)
        logger.info(f"Exporting traces over OTLP/HTTP to {endpoint}")
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    else:
        logger.warning("OTLP_TRACE_ENDPOINT not set, spans go to the console")
        tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tracer_provider)

    readers = [PeriodicExportingMetricReader(ConsoleMetricExporter())] if export_metrics else []
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=readers))

    _provider_installed = True


def shutdown_opentelemetry() -> None:
    """Flush pending spans. Called from the application lifespan."""
    provider = trace.get_tracer_provider()
    if not hasattr(provider, "shutdown"):
        return
    try:
        provider.shutdown()
    except Exception:
        logger.exception("OpenTelemetry shutdown did not flush cleanly")


class Tracer:
    def __init__(self, name: str = "agent_gateway"):
        self._name = name

    @contextmanager
    def start_span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[trace.Span]:
        # resolved per span so a provider installed after import is picked up
        tracer = trace.get_tracer(self._name)
        with tracer.start_as_current_span(name, attributes=attributes or {}) as span:
            yield span


class Metrics:
    def __init__(self, name: str = "agent_gateway"):
        self._meter = metrics.get_meter(name)
        self._counters = {}
        self._histograms = {}

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None) -> None:
        counter = self._counters.get(name)
        if counter is None:
            counter = self._meter.create_counter(name, description=GATEWAY_COUNTERS.get(name, ""))
            self._counters[name] = counter
        counter.add(value, attributes=tags)

    def record_histogram(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = self._meter.create_histogram(name, unit="s")
            self._histograms[name] = histogram
        histogram.record(value, attributes=tags)


global_tracer = Tracer()
global_metrics = Metrics()
