"""CouchDB implementation of the document store, and its lifecycle."""

import contextlib
from collections.abc import AsyncIterator, Sequence
from typing import Any
from urllib.parse import quote

import httpx
from structlog import get_logger

from couch_adapter.core.config import CouchConfig
from couch_adapter.core.exceptions import (
    InvalidArgumentError,
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
)
from couch_adapter.core.logger import couch_log_context
from couch_adapter.persistence.couch.design_document import design_document
from couch_adapter.persistence.couch.store import (
    ViewQueryParams,
    ViewResult,
    WriteResult,
)

logger = get_logger(__name__)

_DESIGN_PREFIX = "_design/"


def _document_path(identifier: str) -> str:
    """Return the URL path segment(s) for a document id."""
    if identifier.startswith(_DESIGN_PREFIX):
        return _DESIGN_PREFIX + quote(identifier.removeprefix(_DESIGN_PREFIX), safe="")
    return quote(identifier, safe="")


def _raise_for_status(
    response: httpx.Response, lookup_type: str, lookup_value: object
) -> None:
    """
    Raise the store error matching an unsuccessful response.

    :param response: The response from CouchDB.
    :type response: httpx.Response
    :param lookup_type: What was being looked up, for not found errors.
    :type lookup_type: str
    :param lookup_value: The value looked up, for not found errors.
    :type lookup_value: object

    :raises StoreNotFoundError: On 404.
    :raises StoreConflictError: On 409.
    :raises StoreError: On any other unsuccessful status.
    """
    if response.is_success:
        return

    body: dict[str, Any] = {}
    with contextlib.suppress(ValueError):
        body = response.json()
    reason = body.get("reason") or body.get("error") or response.reason_phrase
    detail = f"CouchDB responded {response.status_code}: {reason}"

    if response.status_code == httpx.codes.NOT_FOUND:
        raise StoreNotFoundError(
            detail=detail,
            lookup_model="document" if lookup_type == "id" else "view",
            lookup_type=lookup_type,
            lookup_value=lookup_value,
        )
    if response.status_code == httpx.codes.CONFLICT:
        raise StoreConflictError(
            detail=detail,
            document_id=lookup_value if isinstance(lookup_value, str) else None,
        )
    raise StoreError(detail, response.status_code)


class AsyncCouchClient:
    """
    Document store backed by a CouchDB database over HTTP.

    Transport errors from httpx propagate as they are; the client does not
    retry.
    """

    def __init__(
        self, config: CouchConfig, http_client: httpx.AsyncClient | None = None
    ) -> None:
        """
        Initialize the client.

        :param config: The CouchDB connection configuration.
        :type config: CouchConfig
        :param http_client: An existing httpx client to send requests with. One
            is created from ``config`` if not given.
        :type http_client: httpx.AsyncClient | None
        """
        self.config = config
        self.database = config.database
        self.logger = logger.bind(**couch_log_context(config))
        self._http = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Content-Type": "application/json"},
            auth=(config.user, config.password)  # type: ignore[arg-type]
            if config.uses_basic_auth
            else None,
            timeout=config.timeout_seconds,
        )

    def _url(self, *parts: str) -> str:
        return "/".join((f"/{quote(self.database, safe='')}", *parts))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def insert(self, document: dict[str, Any]) -> WriteResult:
        """
        Insert a new document.

        :param document: The document. An ``_id`` is generated if absent.
        :type document: dict[str, Any]
        :return: The identifier and first revision of the document.
        :rtype: WriteResult
        """
        response = await self._http.post(self._url(), json=document)
        _raise_for_status(response, "id", document.get("_id"))
        return WriteResult.model_validate(response.json())

    async def update(self, document: dict[str, Any]) -> WriteResult:
        """
        Replace an existing document.

        :param document: The document, carrying its ``_id`` and current ``_rev``.
        :type document: dict[str, Any]
        :return: The identifier and new revision of the document.
        :rtype: WriteResult

        :raises StoreConflictError: If ``_rev`` is not the current revision.
        """
        identifier = document.get("_id")
        if not identifier or not document.get("_rev"):
            msg = "Updating a document requires both its _id and _rev."
            raise InvalidArgumentError(msg)
        response = await self._http.put(
            self._url(_document_path(identifier)), json=document
        )
        _raise_for_status(response, "id", identifier)
        return WriteResult.model_validate(response.json())

    async def get(
        self, identifier: str | Sequence[str]
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """
        Get one document by id, or several in the order requested.

        Documents the store reports as missing or deleted are left out of the
        list form; the single form raises.

        :raises StoreNotFoundError: If a single document does not exist.
        """
        if isinstance(identifier, str):
            response = await self._http.get(self._url(_document_path(identifier)))
            _raise_for_status(response, "id", identifier)
            return response.json()

        identifiers = list(identifier)
        response = await self._http.post(
            self._url("_all_docs"),
            params={"include_docs": "true"},
            json={"keys": identifiers},
        )
        _raise_for_status(response, "id", identifiers)
        return [
            row["doc"] for row in response.json().get("rows", []) if row.get("doc")
        ]

    async def query(
        self, design_id: str, view_id: str, params: ViewQueryParams
    ) -> ViewResult:
        """Query a view, returning its rows."""
        response = await self._http.get(
            self._url(_DESIGN_PREFIX + quote(design_id, safe=""), "_view", view_id),
            params=params.to_query_params(),
        )
        _raise_for_status(response, "view", f"{design_id}/{view_id}")
        return ViewResult.model_validate(response.json())

    async def fetch_view_documents(
        self,
        design_id: str,
        view_id: str,
        query_config: ViewQueryParams | None = None,
    ) -> list[dict[str, Any]]:
        """Query a view with documents included, returning only the documents."""
        params = (query_config or ViewQueryParams()).model_copy(
            update={"include_docs": True}
        )
        result = await self.query(design_id, view_id, params)
        return [row.doc for row in result.rows if row.doc is not None]

    async def publish_design_document(
        self, document: dict[str, Any]
    ) -> WriteResult | None:
        """
        Create or update a design document.

        The existing revision is reused, and nothing is written if the stored
        views already match.

        :return: The write result, or None if the document was unchanged.
        :rtype: WriteResult | None
        """
        identifier = document["_id"]
        path = self._url(_document_path(identifier))
        to_write = dict(document)

        response = await self._http.get(path)
        if response.status_code != httpx.codes.NOT_FOUND:
            _raise_for_status(response, "id", identifier)
            existing = response.json()
            if existing.get("views") == document.get("views"):
                return None
            to_write["_rev"] = existing["_rev"]

        self.logger.info("Publishing design document.", design_document=identifier)
        response = await self._http.put(path, json=to_write)
        _raise_for_status(response, "id", identifier)
        return WriteResult.model_validate(response.json())


class AsyncCouchClientManager:
    """Manages AsyncCouchClient lifecycle."""

    def __init__(self) -> None:
        """Initialize the AsyncCouchClientManager."""
        self._client: AsyncCouchClient | None = None

    async def init(
        self, couch_config: CouchConfig, *, publish_design_document: bool = True
    ) -> None:
        """Initialize the client, publishing the adapter's design document."""
        if self._client is None:
            self._client = AsyncCouchClient(couch_config)

        if publish_design_document:
            await self._client.publish_design_document(design_document())

    async def close(self) -> None:
        """Close the CouchDB client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    @contextlib.asynccontextmanager
    async def client(self) -> AsyncIterator[AsyncCouchClient]:
        """Yield the AsyncCouchClient as an async context manager."""
        if self._client is None:
            msg = "AsyncCouchClientManager is not initialized"
            raise RuntimeError(msg)
        yield self._client


couch_manager = AsyncCouchClientManager()
