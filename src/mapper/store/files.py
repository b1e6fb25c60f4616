"""Folder-scoped KML file operations on top of a FileStoreBackend.

Layer files always carry a ``.kml`` extension and a sanitized name. A
layer is soft-deleted by inserting a reserved marker into its file name;
the file itself stays in the store.
"""

from __future__ import annotations

import re

from loguru import logger

from mapper.store.base import FOLDER_MIME, KML_MIME, FileDescriptor, FileStoreBackend

KML_EXTENSION = ".kml"
DEFAULT_SOFT_DELETE_MARKER = "_EXCLUIDO_"
MAX_NAME_LENGTH = 255

_UNSAFE = re.compile(r'[<>:"/\\|?*]')
_SPACES = re.compile(r"\s+")
_UNDERSCORES = re.compile(r"_{2,}")


def ensure_kml_extension(name: str) -> str:
    return name if name.endswith(KML_EXTENSION) else name + KML_EXTENSION


def sanitize_file_name(name: str) -> str:
    """Replace unsafe characters and whitespace with ``_``, collapse runs, cap length."""
    name = _UNSAFE.sub("_", name)
    name = _SPACES.sub("_", name)
    name = _UNDERSCORES.sub("_", name)
    return name[:MAX_NAME_LENGTH]


def layer_file_name(name: str) -> str:
    """Sanitized name ending in ``.kml``, at most MAX_NAME_LENGTH characters.

    The stem is cut, never the extension.
    """
    stem = sanitize_file_name(strip_kml_extension(name))
    return stem[: MAX_NAME_LENGTH - len(KML_EXTENSION)] + KML_EXTENSION


def strip_kml_extension(name: str) -> str:
    return name[: -len(KML_EXTENSION)] if name.endswith(KML_EXTENSION) else name


class FileStoreAdapter:
    """Project-level file operations: folders, active KML listing, soft delete."""

    def __init__(
        self,
        backend: FileStoreBackend,
        soft_delete_marker: str = DEFAULT_SOFT_DELETE_MARKER,
    ) -> None:
        self.backend = backend
        self.soft_delete_marker = soft_delete_marker

    async def get_or_create_folder(self, name: str, parent_id: str | None) -> str:
        """Return the id of folder ``name`` under ``parent_id``, creating it if absent.

        Query-then-create; two concurrent callers can both create it.
        """
        existing = await self.backend.find(name, parent_id, FOLDER_MIME)
        if existing:
            return existing[0].file_id
        folder = await self.backend.create(name, parent_id, FOLDER_MIME)
        logger.info(f"Created folder {name} ({folder.file_id})")
        return folder.file_id

    async def get_or_create_path(self, *names: str) -> str:
        """Walk (creating as needed) a folder path from the store root."""
        parent_id: str | None = None
        for name in names:
            parent_id = await self.get_or_create_folder(name, parent_id)
        return parent_id

    def is_active(self, desc: FileDescriptor) -> bool:
        is_kml = desc.mime_type == KML_MIME or desc.name.endswith(KML_EXTENSION)
        return is_kml and not desc.trashed and self.soft_delete_marker not in desc.name

    async def list_active_files(self, folder_id: str) -> list[FileDescriptor]:
        """KML files in a folder that are neither trashed nor soft-deleted."""
        children = await self.backend.list_children(folder_id)
        active = sorted((d for d in children if self.is_active(d)), key=lambda d: d.name)
        logger.debug(f"Folder {folder_id}: {len(active)} active layer files")
        return active

    async def upload_file(
        self, folder_id: str, name: str, content: str | bytes, mime_type: str = KML_MIME
    ) -> FileDescriptor:
        if isinstance(content, str):
            content = content.encode("utf-8")
        desc = await self.backend.create(layer_file_name(name), folder_id, mime_type, content)
        logger.info(f"Uploaded {desc.name} ({desc.file_id})")
        return desc

    async def rename_file(self, file_id: str, new_name: str) -> FileDescriptor:
        desc = await self.backend.update(file_id, name=layer_file_name(new_name))
        logger.info(f"Renamed {file_id} to {desc.name}")
        return desc

    async def soft_delete(self, file_id: str) -> FileDescriptor:
        """Mark a file inactive by inserting the marker before ``.kml``.

        The base name is shortened when needed so the marker and extension
        always survive the length cap.
        """
        current = await self.backend.get(file_id)
        suffix = f"{self.soft_delete_marker}{KML_EXTENSION}"
        base = strip_kml_extension(current.name)[: MAX_NAME_LENGTH - len(suffix)]
        desc = await self.backend.update(file_id, name=f"{base}{suffix}")
        logger.info(f"Soft-deleted {file_id} as {desc.name}")
        return desc

    async def get_file(self, file_id: str) -> FileDescriptor:
        return await self.backend.get(file_id)

    async def read_file(self, file_id: str) -> str:
        data = await self.backend.download(file_id)
        return data.decode("utf-8")

    async def find_file(self, folder_id: str, name: str) -> FileDescriptor | None:
        """First non-trashed file named exactly ``name`` in the folder."""
        matches = await self.backend.find(name, folder_id)
        return matches[0] if matches else None

    async def put_file(
        self, folder_id: str, name: str, content: bytes, mime_type: str
    ) -> FileDescriptor:
        """Overwrite ``name`` in the folder if it exists, else create it.

        The name is used verbatim (no extension or sanitizing rules).
        """
        existing = await self.find_file(folder_id, name)
        if existing is not None:
            return await self.backend.update(existing.file_id, content=content, mime_type=mime_type)
        return await self.backend.create(name, folder_id, mime_type, content)
