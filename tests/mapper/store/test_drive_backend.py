"""Tests for the Google Drive backend (httpx.MockTransport, no network)."""

import asyncio
import json

import httpx
import pytest

from mapper.errors import StoreOperationError
from mapper.store.base import FOLDER_MIME, KML_MIME
from mapper.store.drive import DriveBackend

API = "https://drive.test/drive/v3"
UPLOAD = "https://drive.test/upload/drive/v3"


def _backend(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DriveBackend("drive-token", api_url=API, upload_url=UPLOAD, client=http)


def _file(file_id, name, mime=KML_MIME, **extra):
    return {"id": file_id, "name": name, "mimeType": mime, **extra}


@pytest.mark.unit
class TestDriveSearch:

    def test_find_builds_query(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"files": [_file("f1", "Mapeamento_OOH", FOLDER_MIME)]})

        result = asyncio.run(_backend(handler).find("Mapeamento_OOH", "root-1", FOLDER_MIME))
        assert [d.file_id for d in result] == ["f1"]
        params = seen[0].url.params
        assert params["q"] == (
            "name='Mapeamento_OOH' and trashed=false and 'root-1' in parents"
            f" and mimeType='{FOLDER_MIME}'"
        )
        assert params["supportsAllDrives"] == "true"
        assert seen[0].headers["Authorization"] == "Bearer drive-token"

    def test_find_escapes_quotes(self):
        seen = []

        def handler(request):
            seen.append(request.url.params["q"])
            return httpx.Response(200, json={"files": []})

        asyncio.run(_backend(handler).find("D'Ávila", None))
        assert seen[0] == "name='D\\'Ávila' and trashed=false"

    def test_list_children_descriptors(self):
        def handler(request):
            return httpx.Response(200, json={"files": [
                _file("a", "a.kml", size="120", modifiedTime="2024-01-01T00:00:00Z",
                      webContentLink="https://dl/a", parents=["p"]),
            ]})

        (desc,) = asyncio.run(_backend(handler).list_children("p"))
        assert desc.size == 120
        assert desc.content_url == "https://dl/a"
        assert desc.parents == ["p"]


@pytest.mark.unit
class TestDriveWrites:

    def test_create_folder_uses_json(self):
        def handler(request):
            assert request.url.path == "/drive/v3/files"
            body = json.loads(request.content)
            assert body == {"name": "P", "mimeType": FOLDER_MIME, "parents": ["root"]}
            return httpx.Response(200, json=_file("new", "P", FOLDER_MIME))

        desc = asyncio.run(_backend(handler).create("P", "root", FOLDER_MIME))
        assert desc.file_id == "new"

    def test_create_with_content_is_multipart(self):
        def handler(request):
            assert request.url.path == "/upload/drive/v3/files"
            assert request.url.params["uploadType"] == "multipart"
            assert request.headers["Content-Type"].startswith("multipart/related; boundary=")
            assert b"<kml/>" in request.content
            assert b'"name": "a.kml"' in request.content
            return httpx.Response(200, json=_file("k1", "a.kml"))

        desc = asyncio.run(_backend(handler).create("a.kml", "p", KML_MIME, b"<kml/>"))
        assert desc.name == "a.kml"

    def test_rename_patches_metadata(self):
        def handler(request):
            assert request.method == "PATCH"
            assert json.loads(request.content) == {"name": "b.kml"}
            return httpx.Response(200, json=_file("k1", "b.kml"))

        desc = asyncio.run(_backend(handler).update("k1", name="b.kml"))
        assert desc.name == "b.kml"

    def test_download(self):
        def handler(request):
            assert request.url.params["alt"] == "media"
            return httpx.Response(200, content=b"<kml>x</kml>")

        assert asyncio.run(_backend(handler).download("k1")) == b"<kml>x</kml>"


@pytest.mark.unit
class TestDriveErrors:

    def test_status_error(self):
        backend = _backend(lambda request: httpx.Response(403, text="forbidden"))
        with pytest.raises(StoreOperationError) as exc:
            asyncio.run(backend.get("k1"))
        assert exc.value.operation == "get"
        assert exc.value.status == 403

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(StoreOperationError) as exc:
            asyncio.run(_backend(handler).download("k1"))
        assert exc.value.status is None
