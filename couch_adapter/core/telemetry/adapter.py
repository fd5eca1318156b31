"""Functions for tracing adapter functionality."""

import functools
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, ParamSpec, TypeVar, cast

from opentelemetry import trace

from couch_adapter.core.telemetry.attributes import Attributes

if TYPE_CHECKING:
    from couch_adapter.persistence.couch.adapter import CouchAdapter

T = TypeVar("T")
P = ParamSpec("P")


def trace_adapter_method(
    tracer: trace.Tracer,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorate an adapter method with a given tracer."""

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        """Decorate adapter methods with standard telemetry tracing attributes."""

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            adapter = cast("CouchAdapter", args[0])

            method_parts = func.__name__.split("_")
            verb = method_parts[0]

            span_name = f"{adapter.system}: {verb.capitalize()} document"
            if len(method_parts) > 1:
                details = "_".join(method_parts[1:])
                span_name = f"{span_name}.{details}"

            with tracer.start_as_current_span(
                span_name,
                attributes={
                    Attributes.CODE_FUNCTION_NAME: func.__qualname__,
                    Attributes.DB_OPERATION_NAME: verb,
                    Attributes.DB_SYSTEM_NAME: adapter.system,
                },
            ):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
