#!/usr/bin/env python3

from unittest.mock import MagicMock, patch

import pytest
from fastapi.concurrency import run_in_threadpool
from fastapi.testclient import TestClient

from domain.exceptions import InvalidRequestError, TransientStoreError, UpstreamTransferError
from infrastructure.container import Container
from main import create_app
from services.application.file_transport import ProxiedFile


class StubTransport:
    """File transport that never leaves the process"""

    def __init__(self):
        self.error = None
        self.downloads = []
        self.proxied = []

    def download_to_path(self, url, save_path, file_name):
        if self.error:
            raise self.error
        self.downloads.append(url)
        return f"{save_path}/{file_name}", 3

    def open_stream(self, url):
        if not url:
            raise InvalidRequestError("URL parameter is required")
        if self.error:
            raise self.error
        response = MagicMock()
        self.proxied.append(response)
        return ProxiedFile(
            chunks=iter([b"PK", b"\x03\x04"]),
            headers={"Content-Type": "application/zip", "Content-Length": "4"},
            response=response,
        )


@pytest.fixture
def transport():
    return StubTransport()


@pytest.fixture
def container(memory_store, dispatcher, transport):
    return Container(record_store=memory_store, dispatcher=dispatcher, file_transport=transport)


@pytest.fixture
def client(container):
    return TestClient(create_app(container))


def test_root_and_health(client):
    assert client.get("/").text == "Server is running"

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["record_store"] == "connected"


def test_health_check_runs_off_the_event_loop(container):
    with patch("main.run_in_threadpool", wraps=run_in_threadpool) as offload:
        response = TestClient(create_app(container)).get("/health")

    assert response.status_code == 200
    offload.assert_called_once_with(container.get_service("access").health)


def test_recent_seta_for_authorized_user(client, memory_store, dispatcher):
    response = client.get("/getRecentSeta", params={"id": "D1", "userId": "u1"})
    dispatcher.drain()

    assert response.status_code == 200
    body = response.json()
    assert body["version"] == "2.0"
    assert body["primaryFileUrl"] == "https://files.example.com/d1/2.0/train.zip"
    assert len(body["files"]) == 2
    assert body["publishedOn"] == "2024-02-01T00:00:00.000000Z"
    assert memory_store.get_document("datasets/D1")["requestCount"] == 1


def test_recent_seta_denied(client, dispatcher):
    response = client.get("/getRecentSeta", params={"id": "D1", "userId": "u2"})

    assert response.status_code == 403
    assert response.json() == {"detail": "Not authorized"}
    assert dispatcher.stats()["submitted"] == 0


def test_missing_parameters_are_bad_requests(client):
    response = client.get("/getSetaByVersion", params={"id": "D1"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required parameters: version, userId"


def test_seta_by_version(client):
    response = client.get("/getSetaByVersion", params={"id": "D1", "version": "1.0", "userId": "u1"})

    assert response.status_code == 200
    assert response.json()["version"] == "1.0"
    assert response.json()["files"][0]["name"] == "data.zip"


def test_unknown_version_is_not_found(client):
    response = client.get("/getSetaByVersion", params={"id": "D1", "version": "9.9", "userId": "u1"})
    assert response.status_code == 404


def test_disabled_version_is_forbidden(client, memory_store):
    memory_store.set_or_merge("datasets/D1/versions/1.0", {"isDisabled": True})

    response = client.get("/getSetaByVersion", params={"id": "D1", "version": "1.0", "userId": "u1"})

    assert response.status_code == 403
    assert "disabled" in response.json()["detail"]


def test_seta_instance(client):
    response = client.get(
        "/getSetaInstance",
        params={"id": "D1", "version": "2.0", "instanceId": "snap-1", "userId": "u1"},
    )

    assert response.status_code == 200
    assert response.json()["instanceId"] == "snap-1"
    assert response.json()["savedAt"] == "2024-02-10T08:30:00.000000Z"


def test_download_recent_seta(client, transport, memory_store, dispatcher):
    response = client.get(
        "/downloadRecentSeta", params={"id": "PUB", "userId": "anyone", "savePath": "/data/setas"}
    )
    dispatcher.drain()

    assert response.status_code == 200
    assert response.json() == {
        "message": "Downloaded successfully",
        "path": "/data/setas/PUB_0.1_download.zip",
        "version": "0.1",
    }
    assert transport.downloads == ["https://files.example.com/pub/a.zip"]
    assert memory_store.get_document("datasets/PUB")["requestCount"] == 1


def test_download_upstream_failure(client, transport, dispatcher):
    transport.error = UpstreamTransferError("Failed to download file from storage")

    response = client.get(
        "/downloadSetaByVersion",
        params={"id": "D1", "version": "2.0", "userId": "u1", "savePath": "/data"},
    )

    assert response.status_code == 502
    assert dispatcher.stats()["submitted"] == 0


def test_proxy_relays_file(client, transport):
    response = client.get("/proxy", params={"url": "https://files.example.com/pub/a.zip"})

    assert response.status_code == 200
    assert response.content == b"PK\x03\x04"
    assert response.headers["content-type"] == "application/zip"
    transport.proxied[0].close.assert_called_once()


def test_proxy_requires_url(client):
    response = client.get("/proxy")
    assert response.status_code == 400


def test_store_outage_is_service_unavailable(dispatcher, transport):
    store = MagicMock()
    store.get_document.side_effect = TransientStoreError("Record store unavailable during get_document")
    client = TestClient(create_app(Container(record_store=store, dispatcher=dispatcher, file_transport=transport)))

    response = client.get("/getRecentSeta", params={"id": "D1", "userId": "u1"})

    assert response.status_code == 503


def test_unexpected_errors_are_opaque(dispatcher, transport):
    store = MagicMock()
    store.get_document.side_effect = KeyError("boom")
    client = TestClient(create_app(Container(record_store=store, dispatcher=dispatcher, file_transport=transport)))

    response = client.get("/getRecentSeta", params={"id": "D1", "userId": "u1"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
