"""In-process file store backend for tests and local runs."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone

from mapper.errors import StoreOperationError
from mapper.store.base import FileDescriptor, FileStoreBackend


class MemoryBackend(FileStoreBackend):
    """Dict-backed store. Ids are ``file-<n>`` in creation order."""

    def __init__(self) -> None:
        self._files: dict[str, FileDescriptor] = {}
        self._content: dict[str, bytes] = {}
        self._ids = itertools.count(1)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _require(self, file_id: str, operation: str) -> FileDescriptor:
        desc = self._files.get(file_id)
        if desc is None:
            raise StoreOperationError(operation, 404, f"File not found: {file_id}")
        return desc

    def trash(self, file_id: str) -> None:
        """Move a file to the trash (store-side deletion, not a soft delete)."""
        self._require(file_id, "trash").trashed = True

    def all_files(self) -> list[FileDescriptor]:
        """Every entry, trashed or not."""
        return list(self._files.values())

    async def find(
        self, name: str, parent_id: str | None, mime_type: str | None = None
    ) -> list[FileDescriptor]:
        return [
            d for d in self._files.values()
            if d.name == name
            and not d.trashed
            and (parent_id is None or parent_id in d.parents)
            and (mime_type is None or d.mime_type == mime_type)
        ]

    async def list_children(self, parent_id: str) -> list[FileDescriptor]:
        children = [
            d for d in self._files.values()
            if parent_id in d.parents and not d.trashed
        ]
        return sorted(children, key=lambda d: d.name)

    async def get(self, file_id: str) -> FileDescriptor:
        return self._require(file_id, "get")

    async def create(
        self,
        name: str,
        parent_id: str | None,
        mime_type: str,
        content: bytes | None = None,
    ) -> FileDescriptor:
        file_id = f"file-{next(self._ids)}"
        desc = FileDescriptor(
            file_id=file_id,
            name=name,
            mime_type=mime_type,
            size=len(content) if content is not None else None,
            modified_time=self._now(),
            content_url=f"memory://{file_id}",
            parents=[parent_id] if parent_id else [],
        )
        self._files[file_id] = desc
        if content is not None:
            self._content[file_id] = content
        return desc

    async def update(
        self,
        file_id: str,
        name: str | None = None,
        content: bytes | None = None,
        mime_type: str | None = None,
    ) -> FileDescriptor:
        desc = self._require(file_id, "update")
        if name is not None:
            desc.name = name
        if mime_type is not None:
            desc.mime_type = mime_type
        if content is not None:
            self._content[file_id] = content
            desc.size = len(content)
        desc.modified_time = self._now()
        return desc

    async def download(self, file_id: str) -> bytes:
        self._require(file_id, "download")
        return self._content.get(file_id, b"")
