"""The design document holding the views the adapter queries by default."""

from typing import Any

from couch_adapter.persistence.couch.views import (
    DEFAULT_DESIGN_ID,
    RELATIONSHIP_VIEW_ID,
    TYPE_VIEW_ID,
)

# CouchDB evaluates map functions in its own JavaScript engine.
TYPE_ID_MAP = """function (doc) {
  emit([doc.type, doc._id]);
}"""

TYPE_ANCESTOR_MAP = """function (doc) {
  Object.keys(doc).filter(function (key) {
    return /.Id$/.test(key) && typeof doc[key] === 'string';
  }).forEach(function (key) {
    emit([doc.type, key.substring(0, key.length - 2), doc[key]]);
  });
}"""


def design_document_id(design_id: str = DEFAULT_DESIGN_ID) -> str:
    """Return the document id of a design document."""
    return f"_design/{design_id}"


def design_document(design_id: str = DEFAULT_DESIGN_ID) -> dict[str, Any]:
    """
    Build the design document defining the adapter's views.

    ``type_id`` indexes every document by ``[type, _id]``.
    ``type-ancestor_type-ancestor_id`` indexes a document once per string
    property named ``<ancestor>Id``, keyed ``[type, ancestor, identifier]``.
    """
    return {
        "_id": design_document_id(design_id),
        "language": "javascript",
        "views": {
            TYPE_VIEW_ID: {"map": TYPE_ID_MAP},
            RELATIONSHIP_VIEW_ID: {"map": TYPE_ANCESTOR_MAP},
        },
    }
