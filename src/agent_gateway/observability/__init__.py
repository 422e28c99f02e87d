from .telemetry import (
    logger,
    global_tracer,
    global_metrics,
    Tracer,
    Metrics,
    configure_opentelemetry,
    shutdown_opentelemetry,
)

__all__ = [
    "logger",
    "global_tracer",
    "global_metrics",
    "Tracer",
    "Metrics",
    "configure_opentelemetry",
    "shutdown_opentelemetry",
]
