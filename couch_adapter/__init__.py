"""Persist model instances, and the relationships between them, in CouchDB."""

from couch_adapter.core.config import (
    AdapterConfig,
    CouchConfig,
    RelationshipDetection,
    ViewDescriptor,
    ViewName,
)
from couch_adapter.core.logger import configure_logging
from couch_adapter.domain.base import DomainBaseModel, ModelInstance
from couch_adapter.domain.schema import (
    ModelRegistry,
    ModelType,
    RelationshipDescriptor,
    SchemaResolver,
)
from couch_adapter.persistence.couch.adapter import CouchAdapter, RowsResult
from couch_adapter.persistence.couch.client import (
    AsyncCouchClient,
    AsyncCouchClientManager,
    couch_manager,
)
from couch_adapter.persistence.couch.store import DocumentStore, ViewQueryParams

__all__ = [
    "AdapterConfig",
    "AsyncCouchClient",
    "AsyncCouchClientManager",
    "CouchAdapter",
    "CouchConfig",
    "DocumentStore",
    "DomainBaseModel",
    "ModelInstance",
    "ModelRegistry",
    "ModelType",
    "RelationshipDescriptor",
    "RelationshipDetection",
    "RowsResult",
    "SchemaResolver",
    "ViewDescriptor",
    "ViewName",
    "ViewQueryParams",
    "configure_logging",
    "couch_manager",
]
