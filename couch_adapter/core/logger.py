"""
Structured logging for applications using the adapter.

The adapter's modules log through ``structlog.get_logger``. Without any
configuration those events go to structlog's defaults; ``configure_logging``
routes them, and everything logged through the standard library (httpx
included), through one set of processors that tags each event with the
CouchDB database and the active OpenTelemetry span.
"""

import logging
from collections.abc import Mapping
from typing import Any

import structlog
from opentelemetry import trace

from couch_adapter.core.config import CouchConfig, Settings
from couch_adapter.core.telemetry.attributes import Attributes

COUCH_SYSTEM_NAME = "couchdb"


def couch_log_context(couch_config: CouchConfig) -> dict[str, str]:
    """Return the fields identifying the CouchDB database in log events."""
    return {
        Attributes.DB_SYSTEM_NAME.value: COUCH_SYSTEM_NAME,
        Attributes.DB_NAMESPACE.value: couch_config.database,
    }


class AddCouchContext:
    """Processor adding the CouchDB database fields to events that lack them."""

    def __init__(self, context: Mapping[str, str]) -> None:
        """Initialize the processor with the fields to add."""
        self.context = dict(context)

    def __call__(
        self,
        _logger: Any,  # noqa: ANN401
        _method_name: str,
        event_dict: structlog.typing.EventDict,
    ) -> structlog.typing.EventDict:
        """Add each context field not already bound on the event."""
        for key, value in self.context.items():
            event_dict.setdefault(key, value)
        return event_dict


def add_open_telemetry_spans(
    _logger: Any,  # noqa: ANN401
    _method_name: str,
    event_dict: structlog.typing.EventDict,
) -> structlog.typing.EventDict:
    """Add the trace and span ids of the recording span, if any."""
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def _processors(
    couch_config: CouchConfig, *, rich_rendering: bool
) -> tuple[list[structlog.types.Processor], list[structlog.types.Processor]]:
    """Return the hydrating and the rendering processors."""
    hydrating: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        AddCouchContext(couch_log_context(couch_config)),
        add_open_telemetry_spans,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    rendering: list[structlog.types.Processor] = [
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info
        if rich_rendering
        else structlog.processors.ExceptionRenderer(),
        structlog.dev.ConsoleRenderer()
        if rich_rendering
        else structlog.processors.LogfmtRenderer(),
    ]
    return hydrating, rendering


def configure_logging(settings: Settings) -> None:
    """
    Configure structlog and the root logger from application settings.

    Console rendering is used when running locally, logfmt otherwise.

    :param settings: The application settings.
    :type settings: Settings
    """
    level: int = logging.getLevelNamesMapping()[settings.log_level.upper()]
    hydrating, rendering = _processors(
        settings.couch_config, rich_rendering=settings.running_locally
    )

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        processors=[*hydrating, *rendering],
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                *hydrating,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *rendering,
            ]
        )
    )

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
