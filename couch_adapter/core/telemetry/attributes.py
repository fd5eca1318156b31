"""Mixes OpenTelemetry semantic conventions with adapter-specific attributes."""

from enum import StrEnum

from opentelemetry import trace
from opentelemetry.semconv._incubating.attributes import (
    db_attributes as _db_attributes,
)
from opentelemetry.semconv.attributes import (
    code_attributes,
    db_attributes,
)
from opentelemetry.util.types import AttributeValue


class Attributes(StrEnum):
    """OpenTelemetry semantic conventions for the adapter."""

    ### OTEL attributes (with a few extensions)

    # Application attributes
    CODE_FUNCTION_NAME = code_attributes.CODE_FUNCTION_NAME

    # Database attributes
    DB_SYSTEM_NAME = db_attributes.DB_SYSTEM_NAME
    DB_NAMESPACE = db_attributes.DB_NAMESPACE
    DB_OPERATION_NAME = db_attributes.DB_OPERATION_NAME
    DB_PK = _db_attributes.DB_QUERY_PARAMETER_TEMPLATE + ".pk"

    ### Adapter attributes

    MODEL_TYPE = "couch_adapter.model.type"
    VIEW_DESIGN_ID = "couch_adapter.view.design_id"
    VIEW_ID = "couch_adapter.view.view_id"
    RELATIONSHIP_TYPE = "couch_adapter.relationship.type"


def trace_attribute(attribute: Attributes, value: AttributeValue) -> None:
    """Trace an attribute in the current span."""
    trace.get_current_span().set_attribute(attribute.value, value)


def set_span_status(
    status: trace.StatusCode,
    detail: str | None = None,
    exception: BaseException | None = None,
) -> None:
    """Set the status of the current span."""
    trace.get_current_span().set_status(trace.Status(status, detail))
    if exception:
        trace.get_current_span().record_exception(exception)
