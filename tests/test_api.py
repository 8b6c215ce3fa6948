import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from filevault.errors import BlobWriteError
from filevault.main import app


@pytest_asyncio.fixture
async def client(orchestrator):
    app.state.orchestrator = orchestrator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_welcome(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.text == "Welcome to online storage API"


@pytest.mark.asyncio
async def test_upload_download_search(client):
    response = await client.post(
        "/api/files/upload",
        files={"file": ("vacation.png", b"\x89PNG fake", "image/png")},
        data={"tags": "beach, summer"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["originalName"] == "vacation.png"
    assert body["sizeBytes"] == len(b"\x89PNG fake")
    assert body["tags"] == ["beach", "summer"]
    assert "iv" not in body
    stored_name = body["storedName"]

    response = await client.get(f"/api/files/{stored_name}/download")
    assert response.status_code == 200
    assert response.content == b"\x89PNG fake"
    assert response.headers["content-type"] == "image/png"

    response = await client.get("/api/files/search", params={"q": "BEACH"})
    assert [f["storedName"] for f in response.json()] == [stored_name]

    response = await client.get("/api/files/search", params={"q": ""})
    assert response.json() == []

    response = await client.get("/api/files")
    assert len(response.json()) == 1

    response = await client.get(f"/api/files/{stored_name}")
    assert response.json()["mimeType"] == "image/png"

    response = await client.get("/api/tags")
    assert [t["name"] for t in response.json()] == ["beach", "summer"]


@pytest.mark.asyncio
async def test_upload_rejects_bad_type(client):
    response = await client.post(
        "/api/files/upload",
        files={"file": ("run.sh", b"#!/bin/sh", "application/x-sh")},
    )
    assert response.status_code == 415


@pytest.mark.asyncio
async def test_unknown_file_is_404(client):
    assert (await client.get("/api/files/does-not-exist/download")).status_code == 404
    assert (await client.get("/api/files/does-not-exist")).status_code == 404


@pytest.mark.asyncio
async def test_upload_too_large_is_413(client, orchestrator):
    orchestrator.max_upload_bytes = 16
    response = await client.post(
        "/api/files/upload",
        files={"file": ("big.txt", b"x" * 17, "text/plain")},
    )
    assert response.status_code == 413

    response = await client.post(
        "/api/files/upload",
        files={"file": ("fits.txt", b"x" * 16, "text/plain")},
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_overlong_tag_is_400(client):
    response = await client.post(
        "/api/files/upload",
        files={"file": ("a.txt", b"x", "text/plain")},
        data={"tags": "t" * 101},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_blob_write_failure_is_503(client, orchestrator):
    async def failing_write(storage_path, data):
        raise BlobWriteError("disk full")

    orchestrator.blob_store.write = failing_write
    response = await client.post(
        "/api/files/upload",
        files={"file": ("a.txt", b"x", "text/plain")},
    )
    assert response.status_code == 503
    assert (await client.get("/api/files")).json() == []
