"""Model schema descriptors used to recognise relationship properties."""

from typing import Protocol

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

TO_ONE_SUFFIX = "Id"
TO_MANY_SUFFIX = "Ids"


class RelationshipDescriptor(BaseModel):
    """A relationship from one model type to another."""

    related_type: str = Field(description="The type name of the related model.")
    is_to_many: bool = Field(
        default=False,
        description="True if the property holds an ordered sequence of instances.",
    )

    @property
    def suffix(self) -> str:
        """Return the suffix appended to the property name in documents."""
        return TO_MANY_SUFFIX if self.is_to_many else TO_ONE_SUFFIX

    def document_key(self, name: str) -> str:
        """Return the document key holding the identifier(s) for ``name``."""
        return f"{name}{self.suffix}"


class ModelType(BaseModel):
    """Properties and relationships of a single model type."""

    name: str
    properties: list[str] = Field(default_factory=list)
    relationships: dict[str, RelationshipDescriptor] = Field(default_factory=dict)


class SchemaResolver(Protocol):
    """Anything able to look up a model type by name."""

    def get_model_type(self, type_name: str) -> ModelType | None:
        """Return the model type called ``type_name``, if there is one."""
        ...


class ModelRegistry:
    """In-memory schema resolver."""

    def __init__(self, model_types: list[ModelType] | None = None) -> None:
        """Initialize the registry, optionally with some model types."""
        self._model_types: dict[str, ModelType] = {}
        for model_type in model_types or []:
            self.register(model_type)

    def register(self, model_type: ModelType) -> ModelType:
        """Register a model type, replacing any existing type of the same name."""
        if model_type.name in self._model_types:
            logger.info("Replacing registered model type.", type=model_type.name)
        self._model_types[model_type.name] = model_type
        return model_type

    def get_model_type(self, type_name: str) -> ModelType | None:
        """Return the registered model type called ``type_name``."""
        return self._model_types.get(type_name)
