"""
A CouchDB persistence adapter for model instances.

The adapter maps the ``id`` of a model instance to the ``_id`` of its
document and back. The revision is carried as ``_rev`` in both directions;
on instances it is exposed as the ``rev`` attribute.

Usage:

    ```
    from couch_adapter import AsyncCouchClient, CouchAdapter, CouchConfig

    store = AsyncCouchClient(CouchConfig(host=HOST, port=PORT, path=DATABASE))
    adapter = CouchAdapter(store, schema=model_registry)
    post = await adapter.create(post)
    ```
"""

from collections.abc import Mapping, Sequence
from typing import Any, Self

from opentelemetry import trace
from pydantic import BaseModel, Field
from structlog import get_logger

from couch_adapter.core.config import AdapterConfig, RelationshipDetection, Settings
from couch_adapter.core.exceptions import (
    ConfigurationError,
    MissingArgumentError,
    MissingInstanceError,
)
from couch_adapter.core.telemetry.adapter import trace_adapter_method
from couch_adapter.core.telemetry.attributes import Attributes, trace_attribute
from couch_adapter.domain.base import ModelInstance
from couch_adapter.domain.schema import RelationshipDescriptor, SchemaResolver
from couch_adapter.persistence.couch.codec import Relationships, get_codec
from couch_adapter.persistence.couch.store import DocumentStore, ViewQueryParams
from couch_adapter.persistence.couch.views import ViewRegistry

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)


class RowsResult(BaseModel):
    """Decoded documents returned by a multi-document read."""

    rows: list[dict[str, Any]] = Field(default_factory=list)


def _require(argument: str, value: object) -> None:
    """Raise if a required argument is missing or empty."""
    if not value:
        msg = f"Missing required argument: {argument}."
        raise MissingArgumentError(msg, argument=argument)


class CouchAdapter:
    """
    Create, read and update model instances in a document store.

    Every operation stands alone: the adapter holds configuration only, and
    store errors (including revision conflicts) reach the caller unmodified.
    """

    system = "CouchDB"

    def __init__(
        self,
        store: DocumentStore,
        config: AdapterConfig | None = None,
        schema: SchemaResolver | None = None,
    ) -> None:
        """
        Initialize the adapter.

        :param store: The document store to read and write.
        :type store: DocumentStore
        :param config: Views, codec and relationship detection settings.
        :type config: AdapterConfig | None
        :param schema: Resolver for model types, used to recognise relationships.
        :type schema: SchemaResolver | None
        """
        if store is None:
            msg = "A document store is required."
            raise ConfigurationError(msg)
        self.store = store
        self.config = config or AdapterConfig()
        self.schema = schema
        self.views = ViewRegistry(self.config.views)
        self.codec = get_codec(self.config.codec)

    @classmethod
    def from_settings(
        cls,
        store: DocumentStore,
        settings: Settings,
        schema: SchemaResolver | None = None,
    ) -> Self:
        """Create an adapter configured from application settings."""
        return cls(store, config=settings.adapter_config, schema=schema)

    def _relationships(self, type_name: str | None) -> Relationships | None:
        """
        Return the relationships the codec should map for a type.

        None asks the codec to detect relationships heuristically, which only
        happens when configured and no schema entry exists for the type.
        """
        if self.schema is not None and type_name:
            model_type = self.schema.get_model_type(type_name)
            if model_type is not None:
                return model_type.relationships
        if self.config.relationship_detection == RelationshipDetection.HEURISTIC:
            return None
        return {}

    def _to_document(self, instance: ModelInstance | None) -> dict[str, Any]:
        if instance is None or not isinstance(instance, ModelInstance):
            msg = "Expected a model instance to save."
            raise MissingInstanceError(msg)
        try:
            flat = instance.to_flat_representation()
        except Exception as exc:
            msg = f"The model instance could not be flattened: {exc}"
            raise MissingInstanceError(msg) from exc
        if not isinstance(flat, Mapping):
            msg = (
                "Expected the model instance to flatten to a mapping, got "
                f"{type(flat).__name__}."
            )
            raise MissingInstanceError(msg)
        return self.codec.to_document(flat, self._relationships(instance.type))

    def _to_model(
        self, document: Mapping[str, Any], type_name: str | None = None
    ) -> dict[str, Any]:
        return self.codec.to_model(
            document, self._relationships(document.get("type") or type_name)
        )

    @trace_adapter_method(tracer)
    async def create(self, instance: ModelInstance) -> ModelInstance:
        """
        Persist a new model instance.

        The identifier and revision assigned by the store are set on the
        instance passed in, which is returned rather than a copy.

        :param instance: The instance to persist.
        :type instance: ModelInstance
        :return: The same instance, now carrying ``id`` and ``rev``.
        :rtype: ModelInstance

        :raises MissingInstanceError: If no usable instance is given.
        """
        document = self._to_document(instance)
        trace_attribute(Attributes.MODEL_TYPE, instance.type)

        result = await self.store.insert(document)

        instance.id = result.id
        instance.rev = result.rev
        logger.debug("Created document.", type=instance.type, id=result.id)
        return instance

    @trace_adapter_method(tracer)
    async def get(
        self, type_name: str, identifier: str | Sequence[str]
    ) -> dict[str, Any] | RowsResult:
        """
        Get a record, or several, by type and identifier.

        :param type_name: The model type of the record(s).
        :type type_name: str
        :param identifier: A single identifier, or a sequence of them.
        :type identifier: str | Sequence[str]
        :return: The decoded record, or the decoded records wrapped in rows
            when ``identifier`` is a sequence.
        :rtype: dict[str, Any] | RowsResult
        """
        _require("type", type_name)
        _require("identifier", identifier)
        trace_attribute(Attributes.MODEL_TYPE, type_name)

        if isinstance(identifier, str):
            trace_attribute(Attributes.DB_PK, identifier)
            document = await self.store.get(identifier)
            return self._to_model(document, type_name)  # type: ignore[arg-type]

        documents = await self.store.get(list(identifier))
        return RowsResult(
            rows=[
                self._to_model(document, type_name)  # type: ignore[arg-type]
                for document in documents
            ]
        )

    @trace_adapter_method(tracer)
    async def get_all(self, type_name: str) -> RowsResult:
        """
        Get every record of a type.

        :param type_name: The model type to list.
        :type type_name: str
        :return: The decoded records.
        :rtype: RowsResult

        :raises MissingViewError: If the by-type view is not configured.
        """
        _require("type", type_name)
        query = self.views.by_type_query(type_name)
        trace_attribute(Attributes.MODEL_TYPE, type_name)
        trace_attribute(Attributes.VIEW_DESIGN_ID, query.design_id)
        trace_attribute(Attributes.VIEW_ID, query.view_id)

        result = await self.store.query(query.design_id, query.view_id, query.params)

        return RowsResult(
            rows=[
                self._to_model(row.doc, type_name)
                for row in result.rows
                if row.doc is not None
            ]
        )

    @trace_adapter_method(tracer)
    async def get_related(
        self,
        ancestor_type: str,
        ancestor_id: str,
        relationship: RelationshipDescriptor,
    ) -> RowsResult | dict[str, Any] | None:
        """
        Get the records of a type that refer to an ancestor record.

        Relies on the by-relationship view, which indexes the related record by
        its ``<ancestorType>Id`` property.

        :param ancestor_type: The model type of the ancestor.
        :type ancestor_type: str
        :param ancestor_id: The identifier of the ancestor.
        :type ancestor_id: str
        :param relationship: The relationship to follow.
        :type relationship: RelationshipDescriptor
        :return: For a to-many relationship, every matching record wrapped in
            rows. For a to-one relationship, the first match or None.
        :rtype: RowsResult | dict[str, Any] | None

        :raises MissingViewError: If the by-relationship view is not configured.
        """
        _require("ancestor_type", ancestor_type)
        _require("ancestor_id", ancestor_id)
        _require("relationship", relationship)
        query = self.views.by_relationship_query(
            relationship.related_type, ancestor_type, ancestor_id
        )
        trace_attribute(Attributes.MODEL_TYPE, ancestor_type)
        trace_attribute(Attributes.RELATIONSHIP_TYPE, relationship.related_type)
        trace_attribute(Attributes.DB_PK, ancestor_id)

        result = await self.store.query(query.design_id, query.view_id, query.params)

        records = [
            self._to_model(row.doc, relationship.related_type)
            for row in result.rows
            if row.doc is not None
        ]
        if relationship.is_to_many:
            return RowsResult(rows=records)
        return records[0] if records else None

    @trace_adapter_method(tracer)
    async def update(self, instance: ModelInstance) -> ModelInstance:
        """
        Persist changes to an existing model instance.

        The instance must carry the identifier and current revision from its
        last write. The new revision is set on the instance passed in.

        :param instance: The instance to persist.
        :type instance: ModelInstance
        :return: The same instance, now carrying its new ``rev``.
        :rtype: ModelInstance

        :raises MissingInstanceError: If no usable instance is given.
        """
        document = self._to_document(instance)
        trace_attribute(Attributes.MODEL_TYPE, instance.type)
        if instance.id:
            trace_attribute(Attributes.DB_PK, instance.id)

        result = await self.store.update(document)

        instance.rev = result.rev
        logger.debug("Updated document.", type=instance.type, id=instance.id)
        return instance

    @trace_adapter_method(tracer)
    async def get_from_view(
        self,
        design_id: str,
        view_id: str,
        query_config: ViewQueryParams | Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Get the decoded documents of an arbitrary view, as the view returns them.

        :param design_id: The design document id, without ``_design/``.
        :type design_id: str
        :param view_id: The view within the design document.
        :type view_id: str
        :param query_config: Parameters for the view query.
        :type query_config: ViewQueryParams | Mapping[str, Any] | None
        :return: The decoded documents.
        :rtype: list[dict[str, Any]]
        """
        _require("design_id", design_id)
        _require("view_id", view_id)
        if query_config is not None and not isinstance(query_config, ViewQueryParams):
            query_config = ViewQueryParams.model_validate(query_config)
        trace_attribute(Attributes.VIEW_DESIGN_ID, design_id)
        trace_attribute(Attributes.VIEW_ID, view_id)

        documents = await self.store.fetch_view_documents(
            design_id, view_id, query_config
        )

        return [self._to_model(document) for document in documents]
