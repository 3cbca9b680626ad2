import io
import re
import zipfile

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from dochub import file_routes
from dochub.config import get_settings
from dochub.main import app


@pytest.fixture
def client(fake_s3, settings):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[file_routes.get_s3_client] = lambda: fake_s3
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAdminRoutes:

    def test_wrong_admin_key_looks_like_missing_route(self, client, fake_s3):
        response = client.get("/api/file/list/wrong")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert fake_s3.calls == []

    def test_list_partitions(self, client):
        response = client.get("/api/file/list/secret")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["partitions"] == ["docs", "team"]
        assert data["total_count"] == 2

    def test_list_files_lowercases_partition(self, client):
        response = client.get("/api/file/list/secret/DOCS")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["files"] == ["a.pdf", "b.pdf"]

    def test_list_files_of_unknown_partition(self, client):
        response = client.get("/api/file/list/secret/nope")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_delete_file(self, client, fake_s3):
        response = client.delete("/api/file/delete/secret/docs/a.pdf")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"partition": "docs", "id": "a.pdf"}
        assert "a.pdf" not in fake_s3.partitions["docs"]

    def test_delete_absent_file(self, client):
        response = client.delete("/api/file/delete/secret/docs/zzz.pdf")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_upload_files(self, client, fake_s3):
        response = client.post(
            "/api/file/post/secret",
            data={"partition": "NEW"},
            files=[
                ("files", ("one.txt", b"hello", "text/plain")),
                ("files", ("two.txt", b"world", "text/plain")),
            ],
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["data"] == {"partition": "new", "id": "two.txt"}
        assert fake_s3.partitions["new"] == {"one.txt": b"hello", "two.txt": b"world"}

    def test_upload_requires_admin_key(self, client, fake_s3):
        response = client.post(
            "/api/file/post/wrong",
            data={"partition": "docs"},
            files=[("files", ("one.txt", b"hello", "text/plain"))],
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert fake_s3.calls_to("upload_blob") == []


class TestFileRoutes:

    def test_get_redirects_to_signed_link(self, client):
        response = client.get("/api/file/get/Team/x.pdf", follow_redirects=False)

        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "https://team.s3.test/x.pdf?X-Amz-Expires=600"

    def test_get_absent_file(self, client):
        response = client.get("/api/file/get/team/nope.pdf", follow_redirects=False)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_link_returns_validity_window(self, client):
        response = client.get("/api/file/link/team/x.pdf")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["url"].startswith("https://team.s3.test/x.pdf")
        assert data["valid_from"] < data["valid_until"]

    def test_zip_download(self, client):
        response = client.get("/api/file/zip/docs", params={"files": "a.pdf;b.pdf;c.pdf"})

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "application/zip"
        assert re.search(r'filename="dochub-\d{17}\.zip"', response.headers["content-disposition"])
        assert response.headers["x-missing-files"] == "1"
        with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
            assert sorted(zf.namelist()) == ["MissingFiles.txt", "Readme.txt", "a.pdf", "b.pdf"]

    def test_zip_of_unknown_partition(self, client):
        response = client.get("/api/file/zip/nope", params={"files": "a.pdf"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_storage_fault_maps_to_bad_gateway(self, client, fake_s3):
        fake_s3.exists_faults.add("a.pdf")

        response = client.get("/api/file/zip/docs", params={"files": "a.pdf"})

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["error"]["code"] == "STORAGE_ERROR"
