"""Base model for all domain models to inherit from."""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


@runtime_checkable
class ModelInstance(Protocol):
    """
    The capability the adapter requires of anything it persists.

    ``id`` and ``rev`` are assigned by the store. ``create`` and ``update`` set
    them on the instance they are given and hand that same instance back, so
    the caller's object is the canonical record after a write.
    """

    type: str
    id: str | None
    rev: str | None

    def to_flat_representation(self) -> dict[str, Any]:
        """
        Return a shallow mapping of property name to value.

        Relationship properties may still hold related instances; the revision
        is keyed ``_rev``.
        """
        ...


class DomainBaseModel(BaseModel):
    """
    Pydantic implementation of the model instance capability.

    Extra fields are kept so a bare ``DomainBaseModel`` can carry arbitrary
    properties, and subclasses can declare their own.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    id: str | None = None
    rev: str | None = Field(default=None, alias="_rev")

    def to_flat_representation(self) -> dict[str, Any]:
        """Return properties keyed by alias, leaving related instances in place."""
        flat: dict[str, Any] = {}
        for name, field in type(self).model_fields.items():
            flat[field.alias or name] = getattr(self, name)
        flat.update(self.model_extra or {})
        return flat
