import os
import logging
import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

TRACING_ENABLED = os.getenv("TRACING_ENABLED", "true").lower() == "true"
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").lower()  # json | console

_tracer_provider: TracerProvider | None = None
_logging_configured = False


def add_otel_ids(logger, log_method, event_dict):
    """Stamp the active trace/span ids so log lines join up with Jaeger traces."""
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def configure_logging():
    global _logging_configured
    if _logging_configured:
        return

    renderer = (
        structlog.dev.ConsoleRenderer()
        if LOG_FORMAT == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_otel_ids,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, LOG_LEVEL, logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logging_configured = True


def configure_tracing(app: FastAPI, service_name: str):
    global _tracer_provider
    if not TRACING_ENABLED:
        return

    # Sub-apps share one process, so they share one provider
    if _tracer_provider is None:
        _tracer_provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
        trace.set_tracer_provider(_tracer_provider)
        exporter = OTLPSpanExporter(endpoint=OTLP_ENDPOINT, insecure=True)
        _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


def configure_metrics(app: FastAPI):
    # Request latency and status codes per route, exposed at <mount>/metrics
    Instrumentator(excluded_handlers=["/health", "/metrics"]).instrument(app).expose(
        app, include_in_schema=False
    )


def setup_observability(app: FastAPI, service_name: str):
    """
    Bootstraps logging, tracing and metrics for one FastAPI sub-app.
    Call this once per app at import time.
    """
    configure_logging()
    configure_tracing(app, service_name)
    configure_metrics(app)

    @app.middleware("http")
    async def bind_service_name(request, call_next):
        structlog.contextvars.bind_contextvars(service=service_name)
        try:
            return await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("service")
