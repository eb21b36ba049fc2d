"""Structured logging and optional OpenTelemetry setup for Keyscope."""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

from .config import get_settings

try:
    # Optional OTEL tracing
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
except ImportError:  # pragma: no cover - OTEL is optional
    trace = None  # type: ignore


# Analysis context passed through `extra=` by the estimator
CONTEXT_FIELDS = ("source", "key", "confidence", "frames")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the service and environment."""

    def __init__(self, service: Optional[str] = None, env: Optional[str] = None):
        super().__init__()
        self.service = service
        self.env = env

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if self.service:
            payload["service"] = self.service
        if self.env:
            payload["env"] = self.env
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Attach trace IDs if available
        span = trace.get_current_span() if trace else None
        if span is not None:
            ctx = span.get_span_context()
            if ctx.is_valid:
                payload["trace_id"] = format(ctx.trace_id, "032x")
                payload["span_id"] = format(ctx.span_id, "016x")
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: Optional[str] = None, service_name: Optional[str] = None) -> None:
    s = get_settings()
    log_level = (level or s.KS_LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(service=service_name, env=s.KS_ENV))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level, logging.INFO))


def setup_tracing(service_name: str = "keyscope") -> bool:
    """Initialize OpenTelemetry tracing if endpoint is configured.

    Returns True when a tracer provider was installed.
    """
    s = get_settings()
    if not s.KS_OTEL_ENDPOINT or not trace:
        return False

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=s.KS_OTEL_ENDPOINT))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    return True


__all__ = ["CONTEXT_FIELDS", "setup_logging", "setup_tracing", "JsonFormatter"]
