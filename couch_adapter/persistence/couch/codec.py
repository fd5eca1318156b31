"""
Translation between model instances and CouchDB documents.

Documents never hold nested model graphs. A relationship property ``author``
holding an instance is stored as ``authorId`` holding that instance's
identifier; a to-many ``tags`` is stored as ``tagIds``. Decoding strips the
suffix again but leaves the identifiers unexpanded: fetching the related
documents is up to the caller.

Relationships are recognised from the model type's schema when one is
given. A model instance held by a property the schema does not declare is
still stored as a reference, recognised by its kind. Without a schema the
codec falls back to heuristic detection: model instances and mappings
carrying an ``id`` when encoding, key suffixes when decoding. The latter also
catches plain properties that happen to be named ``somethingId``.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

from pydantic_core import to_jsonable_python

from couch_adapter.core.exceptions import (
    ConfigurationError,
    MissingInstanceError,
    UnpersistedRelationError,
)
from couch_adapter.domain.base import ModelInstance
from couch_adapter.domain.schema import (
    TO_MANY_SUFFIX,
    TO_ONE_SUFFIX,
    RelationshipDescriptor,
)
from couch_adapter.utils.regex import split_relationship_key

Relationships = Mapping[str, RelationshipDescriptor]


def _identifier_of(value: object) -> str | None:
    """Return the identifier of a related instance, mapping or bare identifier."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("id") or value.get("_id")
    return getattr(value, "id", None)


def _require_identifier(name: str, value: object) -> str:
    identifier = _identifier_of(value)
    if not identifier:
        msg = (
            f"Relationship '{name}' refers to an instance with no identifier. "
            "Persist related instances before the instances that refer to them."
        )
        raise UnpersistedRelationError(msg, relationship=name)
    return identifier


def _is_sequence(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)


def _encode_relationship(
    document: dict[str, Any], name: str, value: object, *, is_to_many: bool
) -> None:
    """Replace a relationship value on ``document`` with its identifier(s)."""
    del document[name]
    if value is None:
        return
    if is_to_many:
        if not _is_sequence(value):
            value = [value]
        identifiers = [
            _require_identifier(name, item)
            for item in value  # type: ignore[attr-defined]
        ]
        if identifiers:
            document[f"{name}{TO_MANY_SUFFIX}"] = identifiers
    else:
        document[f"{name}{TO_ONE_SUFFIX}"] = _require_identifier(name, value)


def _is_related(value: object, *, include_mappings: bool) -> bool:
    """Return True if ``value`` is a related instance, persisted or not."""
    if isinstance(value, ModelInstance):
        return True
    return (
        include_mappings
        and isinstance(value, Mapping)
        and ("id" in value or "_id" in value)
    )


def _detect_relationship(value: object, *, include_mappings: bool) -> bool | None:
    """Return whether a relationship-shaped value is to-many, or None if not one."""
    if _is_related(value, include_mappings=include_mappings):
        return False
    if (
        _is_sequence(value)
        and value
        and all(
            _is_related(item, include_mappings=include_mappings)
            for item in value  # type: ignore[attr-defined]
        )
    ):
        return True
    return None


def model_to_document(
    flat: Mapping[str, Any], relationships: Relationships | None = None
) -> dict[str, Any]:
    """
    Convert the flat representation of a model instance into a document.

    :param flat: The output of ``ModelInstance.to_flat_representation``.
    :type flat: Mapping[str, Any]
    :param relationships: Relationship descriptors of the instance's type, or
        None to detect relationships from the kind of the values.
    :type relationships: Mapping[str, RelationshipDescriptor] | None
    :return: A document holding only JSON-safe values.
    :rtype: dict[str, Any]

    :raises UnpersistedRelationError: If a related instance has no identifier.
    :raises MissingInstanceError: If a property cannot be made JSON-safe.
    """
    document = dict(flat)
    declared = relationships or {}

    for name, descriptor in declared.items():
        if name in document:
            _encode_relationship(
                document, name, flat[name], is_to_many=descriptor.is_to_many
            )

    for name, value in flat.items():
        if name in declared:
            continue
        is_to_many = _detect_relationship(
            value, include_mappings=relationships is None
        )
        if is_to_many is not None:
            _encode_relationship(document, name, value, is_to_many=is_to_many)

    identifier = document.pop("id", None)
    if identifier is not None:
        document["_id"] = identifier
    if document.get("_rev") is None:
        document.pop("_rev", None)

    try:
        return to_jsonable_python(document)
    except ValueError as exc:
        msg = f"The model instance could not be converted to a document: {exc}"
        raise MissingInstanceError(msg) from exc


def document_to_model(
    document: Mapping[str, Any], relationships: Relationships | None = None
) -> dict[str, Any]:
    """
    Convert a document into model-shaped data.

    Identifier keys lose their suffix but keep their identifier values. A
    declared to-many relationship missing from the document reads as empty.

    :param document: The document as returned by the store.
    :type document: Mapping[str, Any]
    :param relationships: Relationship descriptors of the document's type, or
        None to detect relationships from key suffixes.
    :type relationships: Mapping[str, RelationshipDescriptor] | None
    :return: The decoded record, with ``_id`` renamed ``id``.
    :rtype: dict[str, Any]
    """
    model = dict(document)

    if relationships is None:
        for key, value in document.items():
            split = split_relationship_key(key)
            if split is None:
                continue
            name, is_to_many = split
            if is_to_many and _is_sequence(value):
                if all(isinstance(item, str) for item in value):
                    model[name] = list(value)
                    del model[key]
            elif not is_to_many and isinstance(value, str):
                model[name] = value
                del model[key]
    else:
        for name, descriptor in relationships.items():
            key = descriptor.document_key(name)
            if key in model:
                model[name] = model.pop(key)
            elif descriptor.is_to_many:
                model.setdefault(name, [])

    if "_id" in model:
        model["id"] = model.pop("_id")

    return model


class DocumentCodec(ABC):
    """A strategy for mapping between model instances and documents."""

    name: ClassVar[str]

    @abstractmethod
    def to_document(
        self, flat: Mapping[str, Any], relationships: Relationships | None
    ) -> dict[str, Any]:
        """Create a document from the flat representation of an instance."""

    @abstractmethod
    def to_model(
        self, document: Mapping[str, Any], relationships: Relationships | None
    ) -> dict[str, Any]:
        """Create model-shaped data from a document."""


class RelationshipCodec(DocumentCodec):
    """Maps identifiers, revisions and relationship references."""

    name = "relationship"

    def to_document(
        self, flat: Mapping[str, Any], relationships: Relationships | None
    ) -> dict[str, Any]:
        """Create a document, flattening relationships to identifiers."""
        return model_to_document(flat, relationships)

    def to_model(
        self, document: Mapping[str, Any], relationships: Relationships | None
    ) -> dict[str, Any]:
        """Create model-shaped data, stripping identifier key suffixes."""
        return document_to_model(document, relationships)


class IdentifierCodec(DocumentCodec):
    """
    Maps ``id`` to ``_id`` and back, leaving relationship keys as stored.

    Related model instances are still written as references, never nested.
    """

    name = "identifier"

    def to_document(
        self,
        flat: Mapping[str, Any],
        relationships: Relationships | None,  # noqa: ARG002
    ) -> dict[str, Any]:
        """Create a document, renaming the identifier."""
        return model_to_document(flat, {})

    def to_model(
        self,
        document: Mapping[str, Any],
        relationships: Relationships | None,  # noqa: ARG002
    ) -> dict[str, Any]:
        """Create model-shaped data, renaming the identifier."""
        return document_to_model(document, {})


codecs: dict[str, DocumentCodec] = {
    codec.name: codec for codec in (RelationshipCodec(), IdentifierCodec())
}


def get_codec(codec: str | DocumentCodec) -> DocumentCodec:
    """Return the codec with the given name, or the given codec itself."""
    if isinstance(codec, DocumentCodec):
        return codec
    try:
        return codecs[codec]
    except KeyError as exc:
        msg = f"Unknown codec '{codec}'. Expected one of: {', '.join(codecs)}."
        raise ConfigurationError(msg) from exc
