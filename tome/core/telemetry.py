"""OpenTelemetry tracing for tome containers.

Container operations run inside :func:`operation_span`, which opens a span,
times the operation for Prometheus and tags log records with the tome name
and operation. Until :func:`init_tracing` installs an SDK provider the spans
go to OpenTelemetry's default no-op proxy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import NoOpTracerProvider

from tome.core.logging import correlation_scope, setup_logging
from tome.core.metrics import observe_operation

if TYPE_CHECKING:
    from tome.config import TelemetryConfig, TomeSettings

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | NoOpTracerProvider | None = None


def init_tracing(config: TelemetryConfig) -> TracerProvider | NoOpTracerProvider:
    """Install a tracer provider according to ``config``.

    Disabled telemetry installs a no-op provider. An endpoint selects the OTLP
    gRPC exporter; without one, finished spans are written to stdout.
    """
    global _tracer_provider  # noqa: PLW0603

    if not config.enabled:
        provider = NoOpTracerProvider()
        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        logger.info("Tracing disabled")
        return provider

    try:
        tome_version = pkg_version("tome")
    except PackageNotFoundError:
        tome_version = "0.0.0"

    resource = Resource.create(
        {
            "service.name": config.service_name,
            "deployment.environment": config.env,
            "service.version": tome_version,
        }
    )
    provider = TracerProvider(resource=resource)

    if config.endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=config.endpoint, insecure=True))
            )
            logger.info("Tracing enabled → %s (env=%s)", config.endpoint, config.env)
        except Exception:
            logger.warning("Failed to initialize OTLP exporter", exc_info=True)
    else:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Tracing enabled → console (env=%s)", config.env)

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def setup_observability(settings: TomeSettings) -> TracerProvider | NoOpTracerProvider:
    """Apply the logging and telemetry sections of ``settings`` at host startup."""
    setup_logging(settings.logging.level, json_output=settings.logging.json_output)
    return init_tracing(settings.telemetry)


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush and shut down the SDK provider, if one was installed."""
    if isinstance(_tracer_provider, TracerProvider):
        _tracer_provider.shutdown()


@contextmanager
def operation_span(tracer: trace.Tracer, tome: str, operation: str) -> Iterator[trace.Span]:
    with (
        correlation_scope(tome=tome, operation=operation),
        observe_operation(tome, operation),
        tracer.start_as_current_span(f"tome.{operation}") as span,
    ):
        span.set_attribute("tome.name", tome)
        yield span


__all__ = [
    "get_tracer",
    "init_tracing",
    "operation_span",
    "setup_observability",
    "shutdown_tracing",
]
