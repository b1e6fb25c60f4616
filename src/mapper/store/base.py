"""File store capability: the primitives every backend provides.

Backends raise StoreOperationError on any non-success response and never
retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

FOLDER_MIME = "application/vnd.google-apps.folder"
KML_MIME = "application/vnd.google-earth.kml+xml"
JSON_MIME = "application/json"


@dataclass
class FileDescriptor:
    """A file or folder in the store.

    Attributes:
        file_id: Store-assigned identifier.
        name: File name including extension.
        mime_type: Content type.
        size: Byte size (None for folders).
        modified_time: ISO8601 last-modified timestamp.
        content_url: URL the content can be downloaded from.
        trashed: Whether the store has the file in its trash.
        parents: Ids of containing folders.
    """

    file_id: str
    name: str
    mime_type: str = ""
    size: int | None = None
    modified_time: str = ""
    content_url: str | None = None
    trashed: bool = False
    parents: list[str] = field(default_factory=list)


class FileStoreBackend(ABC):
    """Folder-scoped file primitives."""

    @abstractmethod
    async def find(
        self, name: str, parent_id: str | None, mime_type: str | None = None
    ) -> list[FileDescriptor]:
        """Non-trashed entries with exactly ``name`` under ``parent_id``."""

    @abstractmethod
    async def list_children(self, parent_id: str) -> list[FileDescriptor]:
        """Non-trashed entries directly under ``parent_id``, sorted by name."""

    @abstractmethod
    async def get(self, file_id: str) -> FileDescriptor:
        ...

    @abstractmethod
    async def create(
        self,
        name: str,
        parent_id: str | None,
        mime_type: str,
        content: bytes | None = None,
    ) -> FileDescriptor:
        ...

    @abstractmethod
    async def update(
        self,
        file_id: str,
        name: str | None = None,
        content: bytes | None = None,
        mime_type: str | None = None,
    ) -> FileDescriptor:
        ...

    @abstractmethod
    async def download(self, file_id: str) -> bytes:
        ...

    async def aclose(self) -> None:
        """Release network resources, if any."""
