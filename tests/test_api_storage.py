"""Tests for the storage endpoints."""

from urllib.parse import urlparse

import pytest

from convospace.storage.local import LocalStorageBackend


@pytest.fixture
def storage(api_client, tmp_path):
    from convospace.api.app import app
    from convospace.api.dependencies import get_storage

    backend = LocalStorageBackend(
        root=tmp_path,
        base_url="http://testserver",
        secret="storage-secret",
        max_file_size=1024,
        quota_bytes=2048,
    )
    app.dependency_overrides[get_storage] = lambda: backend
    return backend


def _upload(api_client, auth_headers, path="docs/readme.txt", content=b"hello world"):
    return api_client.post(
        "/api/storage/upload",
        headers=auth_headers,
        files={"file": ("readme.txt", content, "text/plain")},
        data={"path": path},
    )


class TestStorageApi:
    """Tests for /api/storage."""

    def test_upload_and_download(self, api_client, auth_headers, storage):
        uploaded = _upload(api_client, auth_headers)

        assert uploaded.status_code == 200
        assert uploaded.json()["data"]["size"] == 11
        assert uploaded.json()["data"]["path"] == "docs/readme.txt"

        downloaded = api_client.get(
            "/api/storage/download", params={"path": "docs/readme.txt"}, headers=auth_headers
        )
        assert downloaded.status_code == 200
        assert downloaded.content == b"hello world"
        assert 'filename="readme.txt"' in downloaded.headers["content-disposition"]

    def test_requires_auth(self, api_client, storage):
        response = api_client.get("/api/storage/list")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_upload_requires_path(self, api_client, auth_headers, storage):
        response = api_client.post(
            "/api/storage/upload",
            headers=auth_headers,
            files={"file": ("a.txt", b"x", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "File and path are required"}

    def test_upload_too_large(self, api_client, auth_headers, storage):
        response = _upload(api_client, auth_headers, content=b"x" * 2000)

        assert response.status_code == 413

    def test_quota_exceeded(self, api_client, auth_headers, storage):
        _upload(api_client, auth_headers, path="a.bin", content=b"x" * 1000)
        _upload(api_client, auth_headers, path="b.bin", content=b"x" * 1000)

        response = _upload(api_client, auth_headers, path="c.bin", content=b"x" * 100)

        assert response.status_code == 429

    def test_path_traversal_rejected(self, api_client, auth_headers, storage):
        response = _upload(api_client, auth_headers, path="../escape.txt")

        assert response.status_code == 400

    def test_download_missing(self, api_client, auth_headers, storage):
        response = api_client.get(
            "/api/storage/download", params={"path": "nope.txt"}, headers=auth_headers
        )

        assert response.status_code == 404

    def test_download_requires_path(self, api_client, auth_headers, storage):
        response = api_client.get("/api/storage/download", headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Path is required"}

    def test_list_and_delete(self, api_client, auth_headers, storage):
        _upload(api_client, auth_headers, path="docs/a.txt")
        _upload(api_client, auth_headers, path="img/b.png")

        listed = api_client.get(
            "/api/storage/list", params={"prefix": "docs/"}, headers=auth_headers
        )
        assert listed.json()["data"]["files"] == ["docs/a.txt"]

        deleted = api_client.delete(
            "/api/storage/delete", params={"path": "docs/a.txt"}, headers=auth_headers
        )
        assert deleted.status_code == 200
        again = api_client.delete(
            "/api/storage/delete", params={"path": "docs/a.txt"}, headers=auth_headers
        )
        assert again.status_code == 404

    def test_usage(self, api_client, auth_headers, storage):
        _upload(api_client, auth_headers)

        data = api_client.get("/api/storage/usage", headers=auth_headers).json()["data"]

        assert data["used"] == 11
        assert data["limit"] == 2048
        assert data["fileCount"] == 1

    def test_signed_url_round_trip(self, api_client, auth_headers, storage):
        _upload(api_client, auth_headers)

        signed = api_client.get(
            "/api/storage/signed-url",
            params={"path": "docs/readme.txt", "expiresIn": 60},
            headers=auth_headers,
        ).json()["data"]

        assert signed["expiresIn"] == 60
        parsed = urlparse(signed["url"])
        shared = api_client.get(f"{parsed.path}?{parsed.query}")
        assert shared.status_code == 200
        assert shared.content == b"hello world"

    def test_tampered_signature_rejected(self, api_client, auth_headers, storage):
        _upload(api_client, auth_headers)
        signed = api_client.get(
            "/api/storage/signed-url",
            params={"path": "docs/readme.txt"},
            headers=auth_headers,
        ).json()["data"]
        parsed = urlparse(signed["url"])

        response = api_client.get(f"{parsed.path}?{parsed.query}".replace("user=", "user=9"))

        assert response.status_code == 403
