"""
Integration Tests for Upload Endpoint

Tests the plain chunked upload flow including validation, storage, and error handling.
"""

import pytest

from app.main import app
from app.services.service_factory import get_link_signer, get_storage, get_upload_sessions
from app.services.upload_sessions import UPLOAD_FILETYPES, UploadSessionManager
from link_signing import LinkSigner
from conftest import encode


@pytest.fixture
def sessions(storage, signer):
    """Route the upload endpoint to temporary storage and a fresh session table."""
    manager = UploadSessionManager(UPLOAD_FILETYPES, storage)
    app.dependency_overrides[get_upload_sessions] = lambda: manager
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_link_signer] = lambda: signer
    yield manager
    for dependency in (get_upload_sessions, get_storage, get_link_signer):
        app.dependency_overrides.pop(dependency, None)


def chunk_body(index, total, data, upload_id="part-1", filetype="step"):
    return {
        "id": upload_id,
        "chunkIndex": index,
        "totalChunks": total,
        "filetype": filetype,
        "data": encode(data),
    }


def test_successful_upload(client, sessions, upload_dir):
    """Test a chunked STEP upload is assembled and stored with a signed link."""
    first = client.post("/upload", json=chunk_body(0, 2, b"ISO-10303-21;\n"))
    assert first.status_code == 200
    assert first.json() == {"received": 1, "total": 2, "complete": False}

    second = client.post("/upload", json=chunk_body(1, 2, b"END-ISO-10303-21;\n"))
    assert second.status_code == 200
    data = second.json()

    assert data["complete"] is True
    assert data["id"] == "part-1"
    assert data["filename"] == "part-1-upload.step"
    assert data["filetype"] == "step"
    assert data["size"] == len(b"ISO-10303-21;\nEND-ISO-10303-21;\n")
    assert data["url"].startswith("http://testserver/file/part-1-upload.step?s=")

    stored = upload_dir / "part-1-upload.step"
    assert stored.read_bytes() == b"ISO-10303-21;\nEND-ISO-10303-21;\n"
    assert "part-1" not in sessions


def test_uploaded_file_downloads(client, sessions):
    """Test the issued link serves the uploaded bytes."""
    data = client.post("/upload", json=chunk_body(0, 1, b"solid cube", filetype="stl")).json()

    response = client.get(data["url"].replace("http://testserver", ""))

    assert response.status_code == 200
    assert response.content == b"solid cube"


def test_upload_invalid_file_type(client, sessions):
    """Test upload with an unsupported file type is rejected."""
    response = client.post("/upload", json=chunk_body(0, 1, b"MZ", filetype="exe"))

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "invalid_request"
    assert "Invalid file type" in data["message"]
    assert len(sessions) == 0


def test_upload_missing_fields(client, sessions):
    """Test upload with a missing data field is rejected."""
    response = client.post(
        "/upload",
        json={"id": "x", "chunkIndex": 0, "totalChunks": 1, "filetype": "stl"},
    )

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "invalid_request"
    assert data["details"][0]["loc"][-1] == "data"


def test_upload_without_download_secret(client, storage, upload_dir):
    """Test completion fails as misconfigured and removes the written file."""
    manager = UploadSessionManager(UPLOAD_FILETYPES, storage)
    app.dependency_overrides[get_upload_sessions] = lambda: manager
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_link_signer] = lambda: LinkSigner(None, "http://testserver", upload_dir)
    try:
        response = client.post("/upload", json=chunk_body(0, 1, b"solid", filetype="stl"))
    finally:
        for dependency in (get_upload_sessions, get_storage, get_link_signer):
            app.dependency_overrides.pop(dependency, None)

    assert response.status_code == 500
    assert response.json()["error"] == "misconfigured"
    assert list(upload_dir.iterdir()) == []
    assert "part-1" not in manager
