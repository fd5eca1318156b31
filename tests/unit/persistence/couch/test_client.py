"""Tests for the httpx CouchDB document store."""

import json

import httpx
import pytest
import structlog
from pytest_httpx import HTTPXMock

from couch_adapter.core.config import CouchConfig
from couch_adapter.core.exceptions import (
    InvalidArgumentError,
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
)
from couch_adapter.persistence.couch.client import (
    AsyncCouchClient,
    AsyncCouchClientManager,
)
from couch_adapter.persistence.couch.design_document import design_document
from couch_adapter.persistence.couch.store import ViewQueryParams, WriteResult

BASE_URL = "http://couch.local:5984/test"


@pytest.fixture
def couch_config() -> CouchConfig:
    return CouchConfig(host="http://couch.local", port=5984, path="/test")


@pytest.fixture
async def client(couch_config):
    client = AsyncCouchClient(couch_config)
    yield client
    await client.close()


def _view_url(view_id: str, params: ViewQueryParams) -> httpx.URL:
    return httpx.URL(
        f"{BASE_URL}/_design/couch-adapter/_view/{view_id}",
        params=params.to_query_params(),
    )


async def test_insert(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST",
        url=BASE_URL,
        status_code=201,
        json={"ok": True, "id": "abc", "rev": "1-a"},
    )

    result = await client.insert({"type": "post", "title": "Hello"})

    assert result == WriteResult(id="abc", rev="1-a")
    request = httpx_mock.get_request()
    assert json.loads(request.content) == {"type": "post", "title": "Hello"}


async def test_insert_existing_id_conflicts(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST",
        url=BASE_URL,
        status_code=409,
        json={"error": "conflict", "reason": "Document update conflict."},
    )

    with pytest.raises(StoreConflictError) as exc_info:
        await client.insert({"_id": "abc", "type": "post"})

    assert exc_info.value.document_id == "abc"
    assert "Document update conflict." in exc_info.value.detail


async def test_update(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="PUT",
        url=f"{BASE_URL}/abc",
        status_code=201,
        json={"ok": True, "id": "abc", "rev": "2-b"},
    )

    result = await client.update({"_id": "abc", "_rev": "1-a", "type": "post"})

    assert result.rev == "2-b"


async def test_update_requires_identifier_and_revision(client, httpx_mock: HTTPXMock):
    with pytest.raises(InvalidArgumentError):
        await client.update({"_id": "abc", "type": "post"})

    assert httpx_mock.get_requests() == []


async def test_update_conflict(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="PUT",
        url=f"{BASE_URL}/abc",
        status_code=409,
        json={"error": "conflict", "reason": "Document update conflict."},
    )

    with pytest.raises(StoreConflictError):
        await client.update({"_id": "abc", "_rev": "1-stale", "type": "post"})


async def test_get_single(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE_URL}/abc",
        json={"_id": "abc", "_rev": "1-a", "type": "post"},
    )

    assert await client.get("abc") == {"_id": "abc", "_rev": "1-a", "type": "post"}


async def test_get_single_escapes_identifier(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE_URL}/a%2Fb",
        json={"_id": "a/b", "_rev": "1-a"},
    )

    assert (await client.get("a/b"))["_id"] == "a/b"


async def test_get_single_not_found(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE_URL}/missing",
        status_code=404,
        json={"error": "not_found", "reason": "missing"},
    )

    with pytest.raises(StoreNotFoundError) as exc_info:
        await client.get("missing")

    assert exc_info.value.lookup_value == "missing"
    assert exc_info.value.lookup_type == "id"


async def test_get_many_keeps_order_and_skips_missing(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE_URL}/_all_docs?include_docs=true",
        json={
            "total_rows": 2,
            "rows": [
                {"id": "b", "key": "b", "value": {"rev": "1"}, "doc": {"_id": "b"}},
                {"key": "gone", "error": "not_found"},
                {"id": "a", "key": "a", "value": {"rev": "1"}, "doc": {"_id": "a"}},
            ],
        },
    )

    documents = await client.get(["b", "gone", "a"])

    assert documents == [{"_id": "b"}, {"_id": "a"}]
    assert json.loads(httpx_mock.get_request().content) == {"keys": ["b", "gone", "a"]}


async def test_query(client, httpx_mock: HTTPXMock):
    params = ViewQueryParams(
        start_key=["post"], end_key=["post", {}], include_docs=True
    )
    httpx_mock.add_response(
        method="GET",
        url=_view_url("type_id", params),
        json={
            "total_rows": 1,
            "offset": 0,
            "rows": [
                {"id": "1", "key": ["post", "1"], "value": None, "doc": {"_id": "1"}}
            ],
        },
    )

    result = await client.query("couch-adapter", "type_id", params)

    assert result.total_rows == 1
    assert result.rows[0].doc == {"_id": "1"}
    assert result.rows[0].key == ["post", "1"]


async def test_query_missing_view(client, httpx_mock: HTTPXMock):
    params = ViewQueryParams(key=["post", "author", "1"])
    httpx_mock.add_response(
        method="GET",
        url=_view_url("missing", params),
        status_code=404,
        json={"error": "not_found", "reason": "missing_named_view"},
    )

    with pytest.raises(StoreNotFoundError) as exc_info:
        await client.query("couch-adapter", "missing", params)

    assert exc_info.value.lookup_model == "view"
    assert "missing_named_view" in exc_info.value.detail


async def test_server_error(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(method="GET", url=f"{BASE_URL}/abc", status_code=500)

    with pytest.raises(StoreError) as exc_info:
        await client.get("abc")

    assert exc_info.value.status_code == 500


async def test_fetch_view_documents_unwraps_rows(client, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="GET",
        url=_view_url("type_id", ViewQueryParams(limit=2, include_docs=True)),
        json={
            "rows": [
                {"id": "1", "key": ["post", "1"], "doc": {"_id": "1", "_rev": "1"}},
                {"id": "2", "key": ["post", "2"], "doc": {"_id": "2", "_rev": "1"}},
            ]
        },
    )

    documents = await client.fetch_view_documents(
        "couch-adapter", "type_id", ViewQueryParams(limit=2)
    )

    assert documents == [{"_id": "1", "_rev": "1"}, {"_id": "2", "_rev": "1"}]


async def test_basic_auth(httpx_mock: HTTPXMock):
    client = AsyncCouchClient(
        CouchConfig(
            host="http://couch.local", port=5984, path="test", user="u", password="p"
        )
    )
    httpx_mock.add_response(method="GET", url=f"{BASE_URL}/abc", json={"_id": "abc"})

    await client.get("abc")
    await client.close()

    assert httpx_mock.get_request().headers["Authorization"].startswith("Basic ")


class TestPublishDesignDocument:
    url = f"{BASE_URL}/_design/couch-adapter"

    async def test_creates_when_missing(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=self.url, status_code=404)
        httpx_mock.add_response(
            method="PUT",
            url=self.url,
            status_code=201,
            json={"ok": True, "id": "_design/couch-adapter", "rev": "1-a"},
        )

        result = await client.publish_design_document(design_document())

        assert result is not None
        put = httpx_mock.get_requests(method="PUT")[0]
        assert "_rev" not in json.loads(put.content)

    async def test_publishing_is_logged_with_database(
        self, couch_config, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(method="GET", url=self.url, status_code=404)
        httpx_mock.add_response(
            method="PUT",
            url=self.url,
            status_code=201,
            json={"ok": True, "id": "_design/couch-adapter", "rev": "1-a"},
        )

        with structlog.testing.capture_logs() as logs:
            client = AsyncCouchClient(couch_config)
            await client.publish_design_document(design_document())
        await client.close()

        assert len(logs) == 1
        assert logs[0]["event"] == "Publishing design document."
        assert logs[0]["db.system.name"] == "couchdb"
        assert logs[0]["db.namespace"] == "test"

    async def test_unchanged_is_not_written(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET", url=self.url, json={**design_document(), "_rev": "3-c"}
        )

        assert await client.publish_design_document(design_document()) is None
        assert httpx_mock.get_requests(method="PUT") == []

    async def test_changed_is_updated_with_revision(
        self, client, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=self.url,
            json={"_id": "_design/couch-adapter", "_rev": "3-c", "views": {}},
        )
        httpx_mock.add_response(
            method="PUT",
            url=self.url,
            status_code=201,
            json={"ok": True, "id": "_design/couch-adapter", "rev": "4-d"},
        )

        result = await client.publish_design_document(design_document())

        assert result == WriteResult(id="_design/couch-adapter", rev="4-d")
        put = httpx_mock.get_requests(method="PUT")[0]
        assert json.loads(put.content)["_rev"] == "3-c"


class TestClientManager:
    async def test_client_requires_init(self):
        manager = AsyncCouchClientManager()

        with pytest.raises(RuntimeError, match="not initialized"):
            async with manager.client():
                pass

    async def test_init_publishes_design_document(
        self, couch_config, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE_URL}/_design/couch-adapter",
            json={**design_document(), "_rev": "1-a"},
        )
        manager = AsyncCouchClientManager()

        await manager.init(couch_config)
        async with manager.client() as client:
            assert client.database == "test"
        await manager.close()

        assert len(httpx_mock.get_requests()) == 1

    async def test_init_without_publishing(self, couch_config, httpx_mock: HTTPXMock):
        manager = AsyncCouchClientManager()

        await manager.init(couch_config, publish_design_document=False)
        await manager.close()

        assert httpx_mock.get_requests() == []
