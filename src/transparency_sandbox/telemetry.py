"""Structured logging and optional tracing for the transparency sandbox.

Every module logs through ``logging.getLogger(__name__)``; this module
only decides how those records leave the process.  ``JsonFormatter``
emits one JSON object per line::

    {"timestamp": "...", "level": "info", "context": "transparency_sandbox.runner.executor",
     "message": "Sandbox execution completed successfully", "sandbox": "demo", "duration": 3}

Metadata passed as ``extra={"context": {...}}`` is merged into the object.

Tracing is off until ``init_telemetry()`` installs an OpenTelemetry tracer
provider built from the ``telemetry:`` settings.  Until then
``get_tracer()`` hands out no-op tracers.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from transparency_sandbox.models import LogLevel

if TYPE_CHECKING:
    from transparency_sandbox.config import SandboxConfig

logger = logging.getLogger(__name__)

ROOT_LOGGER = "transparency_sandbox"

_HANDLER_MARKER = "_transparency_sandbox_handler"


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": _level_name(record.levelno),
            "context": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key, value in context.items():
                entry.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            entry["error"] = str(record.exc_info[1])
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time."""

    @property
    def stream(self) -> IO[str]:
        return sys.stderr

    @stream.setter
    def stream(self, value: IO[str]) -> None:
        pass


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return LogLevel.ERROR.value
    if levelno >= logging.WARNING:
        return LogLevel.WARN.value
    if levelno >= logging.INFO:
        return LogLevel.INFO.value
    return LogLevel.DEBUG.value


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    *,
    json_output: bool = True,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Install a single handler on the package logger.

    Calling this again replaces the previous handler rather than adding
    a second one.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)

    handler = (
        logging.StreamHandler(stream) if stream is not None else _StderrHandler()
    )
    setattr(handler, _HANDLER_MARKER, True)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)-7s %(name)s: %(message)s"))

    root.addHandler(handler)
    root.setLevel(LogLevel(level).logging_level)
    return root


def get_logger(context: str) -> logging.Logger:
    """Return a logger under the package namespace."""
    if context == ROOT_LOGGER or context.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(context)
    return logging.getLogger(f"{ROOT_LOGGER}.{context}")


# --- Tracing ---

OTLP_TRACES_PATH = "/v1/traces"

_provider: TracerProvider | None = None


def init_telemetry(
    config: SandboxConfig,
    *,
    exporter: SpanExporter | None = None,
) -> bool:
    """Install a tracer provider from the ``telemetry:`` settings.

    Spans are tagged with ``service.name`` and sampled at
    ``telemetry.sample_rate``.  They are shipped over OTLP/HTTP when
    ``telemetry.endpoint`` is set; *exporter* replaces that default.

    Returns whether tracing is active.  Disabled settings are a no-op,
    and a second call while active keeps the existing provider.
    """
    global _provider

    settings = config.telemetry
    if not settings.enabled:
        logger.debug("Telemetry disabled")
        return False
    if _provider is not None:
        logger.warning("Telemetry already initialized")
        return True

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: config.service_name}),
        sampler=ParentBased(TraceIdRatioBased(settings.sample_rate)),
    )
    if exporter is None and settings.endpoint:
        exporter = OTLPSpanExporter(endpoint=_traces_url(settings.endpoint))
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    _provider = provider
    logger.info(
        "OpenTelemetry initialized for service: %s", config.service_name,
        extra={"context": {
            "endpoint": settings.endpoint,
            "sample_rate": settings.sample_rate,
        }},
    )
    return True


def shutdown_telemetry() -> None:
    """Flush pending spans and drop the tracer provider."""
    global _provider

    if _provider is None:
        return
    provider, _provider = _provider, None
    provider.shutdown()
    logger.info("Telemetry shutdown complete")


def telemetry_active() -> bool:
    return _provider is not None


def get_tracer(name: str) -> trace.Tracer:
    """Tracer from the active provider, or a no-op tracer."""
    if _provider is not None:
        return _provider.get_tracer(name)
    return trace.get_tracer(name)


def _traces_url(endpoint: str) -> str:
    endpoint = endpoint.rstrip("/")
    if endpoint.endswith(OTLP_TRACES_PATH):
        return endpoint
    return endpoint + OTLP_TRACES_PATH
