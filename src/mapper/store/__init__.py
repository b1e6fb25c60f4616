"""Cloud file store access for KML layers and their side-car metadata."""

from mapper.store.base import FileDescriptor, FileStoreBackend
from mapper.store.files import (
    FileStoreAdapter,
    ensure_kml_extension,
    sanitize_file_name,
    strip_kml_extension,
)
from mapper.store.memory import MemoryBackend
from mapper.store.metadata import LayerMetadataDocument, LayerMetadataStore, LayerStyle

__all__ = [
    "FileDescriptor",
    "FileStoreAdapter",
    "FileStoreBackend",
    "LayerMetadataDocument",
    "LayerMetadataStore",
    "LayerStyle",
    "MemoryBackend",
    "ensure_kml_extension",
    "sanitize_file_name",
    "strip_kml_extension",
]
