"""Tests for tome.core.telemetry: tracing setup and operation spans."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import NoOpTracerProvider
from prometheus_client import REGISTRY

from tome.config import LoggingConfig, TelemetryConfig, TomeSettings
from tome.core import telemetry
from tome.core.logging import _JsonFormatter, get_correlation_context
from tome.core.telemetry import (
    get_tracer,
    init_tracing,
    operation_span,
    setup_observability,
    shutdown_tracing,
)


class TestInitTracing:
    def setup_method(self) -> None:
        telemetry._tracer_provider = None

    def test_disabled_returns_noop(self) -> None:
        provider = init_tracing(TelemetryConfig(enabled=False))
        assert isinstance(provider, NoOpTracerProvider)

    def test_enabled_without_endpoint_exports_to_console(self) -> None:
        with patch("tome.core.telemetry.BatchSpanProcessor") as processor:
            provider = init_tracing(TelemetryConfig(enabled=True))

        assert isinstance(provider, TracerProvider)
        processor.assert_called_once()

    def test_service_name_in_resource(self) -> None:
        with patch("tome.core.telemetry.BatchSpanProcessor"):
            provider = init_tracing(
                TelemetryConfig(enabled=True, service_name="ledger", endpoint="localhost:4317", env="test")
            )

        assert isinstance(provider, TracerProvider)
        attrs = dict(provider.resource.attributes)
        assert attrs["service.name"] == "ledger"
        assert attrs["deployment.environment"] == "test"

    def test_exporter_failure_still_returns_provider(self) -> None:
        with patch(
            "tome.core.telemetry.BatchSpanProcessor",
            side_effect=ImportError("no grpc"),
        ):
            provider = init_tracing(TelemetryConfig(enabled=True, endpoint="localhost:4317"))

        assert isinstance(provider, TracerProvider)


class TestShutdownTracing:
    def setup_method(self) -> None:
        telemetry._tracer_provider = None

    def test_shutdown_noop_provider(self) -> None:
        init_tracing(TelemetryConfig())
        shutdown_tracing()

    def test_shutdown_real_provider(self) -> None:
        with patch("tome.core.telemetry.BatchSpanProcessor"):
            init_tracing(TelemetryConfig(enabled=True))
            shutdown_tracing()

    def test_shutdown_without_init(self) -> None:
        shutdown_tracing()


class TestOperationSpan:
    def test_sets_correlation_context_inside_span(self) -> None:
        tracer = get_tracer("test-module")

        with operation_span(tracer, "orders", "add") as span:
            context = get_correlation_context()
            assert context.tome == "orders"
            assert context.operation == "add"
            assert span is not None

        assert get_correlation_context().tome is None

    def test_records_duration_even_when_body_raises(self) -> None:
        tracer = get_tracer("test-module")
        labels = {"tome": "span-test", "operation": "set"}
        before = REGISTRY.get_sample_value("tome_operation_duration_seconds_count", labels) or 0.0

        with pytest.raises(ValueError), operation_span(tracer, "span-test", "set"):
            raise ValueError("boom")

        assert REGISTRY.get_sample_value("tome_operation_duration_seconds_count", labels) == before + 1


class TestSetupObservability:
    def setup_method(self) -> None:
        telemetry._tracer_provider = None

    def test_applies_logging_and_telemetry_sections(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_filters, saved_level = list(root.handlers), list(root.filters), root.level
        settings = TomeSettings(
            logging=LoggingConfig(level="warning", json_output=True),
            telemetry=TelemetryConfig(enabled=False),
        )
        try:
            provider = setup_observability(settings)

            assert isinstance(provider, NoOpTracerProvider)
            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, _JsonFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.filters[:] = saved_filters
            root.setLevel(saved_level)
