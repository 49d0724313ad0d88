"""Logging and tracing setup shared by the API and the issue store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from logging.config import dictConfig
from typing import Iterator, Mapping

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from issue_tracker.core.config import Settings

TRACER_NAME = "issue_tracker"

_active_provider: TracerProvider | None = None


def _parse_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas, ignoring malformed items."""

    pairs = (item.split("=", 1) for item in (raw or "").split(",") if "=" in item)
    return {key.strip(): value.strip() for key, value in pairs}


def configure_logging(settings: Settings) -> logging.Logger:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": settings.log_format}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                }
            },
            "loggers": {
                "issue_tracker": {"level": level},
                "asyncpg": {"level": max(level, logging.WARNING)},
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )
    return logging.getLogger(settings.app_name)


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP exporting tracer provider when tracing is enabled.

    Returns ``None`` when tracing is disabled or a provider was already
    installed by an earlier application start in the same process.
    """

    global _active_provider

    if not settings.otel_enabled or _active_provider is not None:
        return None

    provider = TracerProvider(
        resource=Resource(
            attributes={
                "service.name": settings.otel_service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint or None,
        headers=_parse_headers(settings.otel_exporter_otlp_headers) or None,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _active_provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _active_provider

    if provider is None:
        return
    provider.shutdown()
    if provider is _active_provider:
        _active_provider = None


@contextmanager
def traced(operation: str, attributes: Mapping[str, str | int | bool] | None = None) -> Iterator[None]:
    """Run a block inside a span; a no-op while no provider is installed."""

    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(operation, attributes=dict(attributes or {})):
        yield
