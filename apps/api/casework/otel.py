from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from casework.core.config import get_settings

# Request headers copied onto the server span, keyed by span attribute.
SPAN_HEADER_ATTRIBUTES: dict[str, bytes] = {
    "correlation_id": b"x-correlation-id",
    "tenant_id": b"x-tenant-id",
    "organization_id": b"x-organization-id",
}

_configured = False
_provider: TracerProvider | None = None


def _provider_for(service_name: str) -> TracerProvider:
    global _provider

    if _provider is None:
        settings = get_settings()
        resource = Resource.create(
            {
                "service.name": f"casework-{service_name}",
                "service.version": os.getenv("APP_VERSION", "0.1.0"),
                "deployment.environment": settings.app_env,
            }
        )
        _provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    """Install the tracer provider for the api or worker process.

    Spans are exported over OTLP when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set and
    to stdout when ``OTEL_CONSOLE_EXPORTER=true``. Calling it twice is harmless.
    """
    global _configured

    if not enable:
        return None

    provider = _provider_for(service_name)
    if _configured:
        return provider

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if os.getenv("OTEL_CONSOLE_EXPORTER", "false").lower() == "true":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _configured = True
    return provider


def setup_inmemory_otel(service_name: str = "api") -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _provider_for(service_name).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def tag_case_span(span: trace.Span, case_id: object, status: str | None = None) -> None:
    span.set_attribute("case_id", str(case_id))
    if status is not None:
        span.set_attribute("case_status", status)


def get_fastapi_server_request_hook():
    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        headers = dict(scope.get("headers", []))
        for attribute, header in SPAN_HEADER_ATTRIBUTES.items():
            raw = headers.get(header)
            if raw:
                span.set_attribute(attribute, raw.decode("utf-8"))

    return server_request_hook
