"""Setup fixtures for all tests."""

from collections.abc import Sequence
from typing import Any

import pytest

from couch_adapter.core.exceptions import StoreConflictError, StoreNotFoundError
from couch_adapter.domain.schema import ModelRegistry, ModelType, RelationshipDescriptor
from couch_adapter.persistence.couch.store import (
    ViewQueryParams,
    ViewResult,
    ViewRow,
    WriteResult,
)


class FakeDocumentStore:
    """
    In-memory document store recording every call made to it.

    Views return the documents whose key matches, computed the same way the
    design document's map functions compute them.
    """

    def __init__(self, documents: list[dict[str, Any]] | None = None) -> None:
        self.documents: dict[str, dict[str, Any]] = {
            doc["_id"]: doc for doc in documents or []
        }
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._next_id = 1

    async def insert(self, document: dict[str, Any]) -> WriteResult:
        self.calls.append(("insert", (document,)))
        identifier = document.get("_id") or str(self._next_id)
        self._next_id += 1
        stored = {**document, "_id": identifier, "_rev": "1"}
        self.documents[identifier] = stored
        return WriteResult(id=identifier, rev="1")

    async def update(self, document: dict[str, Any]) -> WriteResult:
        self.calls.append(("update", (document,)))
        identifier = document["_id"]
        current = self.documents.get(identifier)
        if current is None:
            raise StoreNotFoundError(
                detail=f"{identifier} not in store",
                lookup_model="document",
                lookup_type="id",
                lookup_value=identifier,
            )
        if current["_rev"] != document.get("_rev"):
            raise StoreConflictError(
                detail="Document update conflict.", document_id=identifier
            )
        rev = str(int(current["_rev"]) + 1)
        self.documents[identifier] = {**document, "_rev": rev}
        return WriteResult(id=identifier, rev=rev)

    async def get(
        self, identifier: str | Sequence[str]
    ) -> dict[str, Any] | list[dict[str, Any]]:
        self.calls.append(("get", (identifier,)))
        if isinstance(identifier, str):
            if identifier not in self.documents:
                raise StoreNotFoundError(
                    detail=f"{identifier} not in store",
                    lookup_model="document",
                    lookup_type="id",
                    lookup_value=identifier,
                )
            return dict(self.documents[identifier])
        return [dict(self.documents[i]) for i in identifier if i in self.documents]

    def _emit(self, view_id: str, doc: dict[str, Any]) -> list[list[Any]]:
        if view_id == "type_id":
            return [[doc.get("type"), doc["_id"]]]
        return [
            [doc.get("type"), key[:-2], value]
            for key, value in doc.items()
            if key.endswith("Id") and len(key) > 2 and isinstance(value, str)
        ]

    async def query(
        self, design_id: str, view_id: str, params: ViewQueryParams
    ) -> ViewResult:
        self.calls.append(("query", (design_id, view_id, params)))
        rows = []
        for doc in self.documents.values():
            for key in self._emit(view_id, doc):
                if params.key is not None and key != params.key:
                    continue
                if params.start_key is not None and key[: len(params.start_key)] != (
                    params.start_key
                ):
                    continue
                rows.append(
                    ViewRow(
                        id=doc["_id"],
                        key=key,
                        doc=dict(doc) if params.include_docs else None,
                    )
                )
        return ViewResult(rows=rows, total_rows=len(rows), offset=0)

    async def fetch_view_documents(
        self,
        design_id: str,
        view_id: str,
        query_config: ViewQueryParams | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append(("fetch_view_documents", (design_id, view_id, query_config)))
        return [dict(doc) for doc in self.documents.values()]


@pytest.fixture
def fake_store() -> FakeDocumentStore:
    """Provide an empty fake document store."""
    return FakeDocumentStore()


@pytest.fixture
def model_registry() -> ModelRegistry:
    """Provide a schema with posts, authors and tags."""
    return ModelRegistry(
        [
            ModelType(name="author", properties=["name"]),
            ModelType(name="tag", properties=["label"]),
            ModelType(
                name="post",
                properties=["title", "externalId"],
                relationships={
                    "author": RelationshipDescriptor(related_type="author"),
                    "tags": RelationshipDescriptor(related_type="tag", is_to_many=True),
                },
            ),
        ]
    )
