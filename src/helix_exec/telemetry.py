"""OpenTelemetry tracing for helix-exec.

Engine modules take a tracer from :func:`get_tracer` and open spans around
sandbox runs, manifest queries, plugin calls and dispatches. Without a
configured SDK the API hands back no-op spans.

Usage::

    from helix_exec.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("helix.sandbox.execute") as span:
        span.set_attribute(ATTR_COMMAND, command)

Exporting is switched on by the ``telemetry`` block of the settings file
(or ``helix --otel-endpoint``), which the CLI passes to
:func:`configure_telemetry`. That needs the ``otel`` extra:
``pip install helix-exec[otel]``.
"""

from __future__ import annotations

import importlib
import sys
from typing import Any

from opentelemetry import trace
from pydantic import BaseModel

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_COMMAND = "helix.command"
ATTR_WORKING_DIR = "helix.working_dir"
ATTR_PID = "helix.pid"
ATTR_EXIT_CODE = "helix.exit_code"
ATTR_KILLED = "helix.killed_by_sandbox"
ATTR_KILL_KIND = "helix.kill_kind"
ATTR_TOOL_NAME = "helix.tool.name"
ATTR_TOOL_ROUTE = "helix.tool.route"
ATTR_PLUGIN_PATH = "helix.plugin.path"
ATTR_PLUGIN_TOOL_COUNT = "helix.plugin.tool_count"

_INSTRUMENTATION_NAME = "helix_exec"
_SDK = "opentelemetry-sdk"
_OTLP = "opentelemetry-exporter-otlp"


class TelemetrySettings(BaseModel):
    """Span export configuration. Disabled unless ``enabled`` is set."""

    enabled: bool = False
    service_name: str = "helix-exec"
    otlp_endpoint: str | None = None
    console: bool = False


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name* (no-op until a provider is installed)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(settings: TelemetrySettings) -> bool:
    """Install a global tracer provider as described by *settings*.

    Spans go to stderr when ``console`` is set and to an OTLP/gRPC collector
    when ``otlp_endpoint`` is set. Returns whether a provider was installed.

    Raises:
        ImportError: The SDK, or the OTLP exporter when an endpoint is
            given, is not installed.
    """
    if not settings.enabled:
        return False

    resources = _load(_SDK, "opentelemetry.sdk.resources")
    sdk_trace = _load(_SDK, "opentelemetry.sdk.trace")
    export = _load(_SDK, "opentelemetry.sdk.trace.export")

    provider = sdk_trace.TracerProvider(
        resource=resources.Resource.create({"service.name": settings.service_name})
    )
    if settings.console:
        provider.add_span_processor(
            export.SimpleSpanProcessor(export.ConsoleSpanExporter(out=sys.stderr))
        )
    if settings.otlp_endpoint:
        otlp = _load(_OTLP, "opentelemetry.exporter.otlp.proto.grpc.trace_exporter")
        provider.add_span_processor(
            export.BatchSpanProcessor(otlp.OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )

    trace.set_tracer_provider(provider)
    return True


def _load(distribution: str, module: str) -> Any:
    try:
        return importlib.import_module(module)
    except ImportError as exc:
        msg = f"{distribution} is required to export spans. Install it with: pip install helix-exec[otel]"
        raise ImportError(msg) from exc
