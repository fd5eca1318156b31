"""The document store capability the adapter is written against."""

import json
from collections.abc import Sequence
from typing import Any, Protocol, Self

from pydantic import BaseModel, Field, model_validator


class WriteResult(BaseModel):
    """The store's response to a successful insert or update."""

    id: str
    rev: str


class ViewRow(BaseModel):
    """A single row of a view result."""

    id: str | None = None
    key: Any = None
    value: Any = None
    doc: dict[str, Any] | None = None


class ViewResult(BaseModel):
    """The rows returned by a view query."""

    rows: list[ViewRow] = Field(default_factory=list)
    total_rows: int | None = None
    offset: int | None = None


class ViewQueryParams(BaseModel):
    """Parameters for a view query: either an exact key or a key range."""

    key: Any = None
    start_key: Any = None
    end_key: Any = None
    include_docs: bool = False
    limit: int | None = None
    skip: int | None = None
    descending: bool = False

    @model_validator(mode="after")
    def validate_parameters(self) -> Self:
        """Validate the given parameters."""
        if self.key is not None and (
            self.start_key is not None or self.end_key is not None
        ):
            msg = "Use either an exact key or a key range, not both."
            raise ValueError(msg)
        return self

    def to_query_params(self) -> dict[str, str | int]:
        """Render the parameters as CouchDB query string parameters."""
        params: dict[str, str | int] = {}
        if self.key is not None:
            params["key"] = json.dumps(self.key)
        if self.start_key is not None:
            params["startkey"] = json.dumps(self.start_key)
        if self.end_key is not None:
            params["endkey"] = json.dumps(self.end_key)
        if self.include_docs:
            params["include_docs"] = "true"
        if self.descending:
            params["descending"] = "true"
        if self.limit is not None:
            params["limit"] = self.limit
        if self.skip is not None:
            params["skip"] = self.skip
        return params


class DocumentStore(Protocol):
    """
    The document database operations the adapter depends on.

    Implementations raise store errors (not found, revision conflict) as they
    see fit; the adapter lets them propagate unchanged.
    """

    async def insert(self, document: dict[str, Any]) -> WriteResult:
        """Insert a new document, returning its identifier and first revision."""
        ...

    async def update(self, document: dict[str, Any]) -> WriteResult:
        """Replace an existing document whose ``_id`` and ``_rev`` are current."""
        ...

    async def get(
        self, identifier: str | Sequence[str]
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Get one document, or a list of documents in the requested order."""
        ...

    async def query(
        self, design_id: str, view_id: str, params: ViewQueryParams
    ) -> ViewResult:
        """Query a view, returning its rows."""
        ...

    async def fetch_view_documents(
        self,
        design_id: str,
        view_id: str,
        query_config: ViewQueryParams | None = None,
    ) -> list[dict[str, Any]]:
        """Query a view, returning the documents of its rows without wrapping."""
        ...
