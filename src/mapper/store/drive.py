"""Google Drive v3 backend over the REST API.

Authenticates with an OAuth bearer token. Requests include the shared
drive flags so project folders can live on a shared drive.
"""

from __future__ import annotations

import json
import uuid

import httpx
from loguru import logger

from mapper.errors import StoreOperationError
from mapper.store.base import FileDescriptor, FileStoreBackend

DEFAULT_API_URL = "https://www.googleapis.com/drive/v3"
DEFAULT_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"

_FIELDS = "id,name,mimeType,size,modifiedTime,webContentLink,trashed,parents"
_SHARED = {"supportsAllDrives": "true"}


def _quote(value: str) -> str:
    """Quote a literal for a Drive search query."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _descriptor(data: dict) -> FileDescriptor:
    size = data.get("size")
    return FileDescriptor(
        file_id=data["id"],
        name=data.get("name", ""),
        mime_type=data.get("mimeType", ""),
        size=int(size) if size is not None else None,
        modified_time=data.get("modifiedTime", ""),
        content_url=data.get("webContentLink"),
        trashed=bool(data.get("trashed", False)),
        parents=list(data.get("parents") or []),
    )


def _multipart(metadata: dict, content: bytes, mime_type: str) -> tuple[bytes, str]:
    boundary = uuid.uuid4().hex
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--".encode("utf-8")
    return head + content + tail, f"multipart/related; boundary={boundary}"


class DriveBackend(FileStoreBackend):
    """File store backend for Google Drive."""

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        upload_url: str = DEFAULT_UPLOAD_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api = api_url.rstrip("/")
        self._upload = upload_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._client = client or httpx.AsyncClient(timeout=30.0)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            resp = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise StoreOperationError(operation, None, str(e)) from e
        if resp.status_code >= 400:
            logger.warning(f"Drive {operation} failed: {resp.status_code} {resp.text[:200]}")
            raise StoreOperationError(operation, resp.status_code, resp.text)
        return resp

    async def _search(self, operation: str, query: str) -> list[FileDescriptor]:
        params = {
            "q": query,
            "fields": f"files({_FIELDS})",
            "orderBy": "name",
            "spaces": "drive",
            "includeItemsFromAllDrives": "true",
            "pageSize": "1000",
            **_SHARED,
        }
        resp = await self._request(operation, "GET", f"{self._api}/files", params=params)
        return [_descriptor(f) for f in resp.json().get("files", [])]

    async def find(
        self, name: str, parent_id: str | None, mime_type: str | None = None
    ) -> list[FileDescriptor]:
        clauses = [f"name={_quote(name)}", "trashed=false"]
        if parent_id:
            clauses.append(f"{_quote(parent_id)} in parents")
        if mime_type:
            clauses.append(f"mimeType={_quote(mime_type)}")
        return await self._search("find", " and ".join(clauses))

    async def list_children(self, parent_id: str) -> list[FileDescriptor]:
        return await self._search("list", f"{_quote(parent_id)} in parents and trashed=false")

    async def get(self, file_id: str) -> FileDescriptor:
        resp = await self._request(
            "get", "GET", f"{self._api}/files/{file_id}",
            params={"fields": _FIELDS, **_SHARED},
        )
        return _descriptor(resp.json())

    async def create(
        self,
        name: str,
        parent_id: str | None,
        mime_type: str,
        content: bytes | None = None,
    ) -> FileDescriptor:
        metadata: dict = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]
        params = {"fields": _FIELDS, **_SHARED}

        if content is None:
            resp = await self._request(
                "create", "POST", f"{self._api}/files", params=params, json=metadata
            )
        else:
            body, content_type = _multipart(metadata, content, mime_type)
            resp = await self._request(
                "create", "POST", f"{self._upload}/files",
                params={"uploadType": "multipart", **params},
                content=body,
                headers={"Content-Type": content_type},
            )
        desc = _descriptor(resp.json())
        logger.info(f"Drive created {name} ({desc.file_id})")
        return desc

    async def update(
        self,
        file_id: str,
        name: str | None = None,
        content: bytes | None = None,
        mime_type: str | None = None,
    ) -> FileDescriptor:
        metadata: dict = {}
        if name is not None:
            metadata["name"] = name
        params = {"fields": _FIELDS, **_SHARED}

        if content is None:
            resp = await self._request(
                "update", "PATCH", f"{self._api}/files/{file_id}", params=params, json=metadata
            )
        else:
            body, content_type = _multipart(
                metadata, content, mime_type or "application/octet-stream"
            )
            resp = await self._request(
                "update", "PATCH", f"{self._upload}/files/{file_id}",
                params={"uploadType": "multipart", **params},
                content=body,
                headers={"Content-Type": content_type},
            )
        return _descriptor(resp.json())

    async def download(self, file_id: str) -> bytes:
        resp = await self._request(
            "download", "GET", f"{self._api}/files/{file_id}",
            params={"alt": "media", **_SHARED},
        )
        return resp.content
