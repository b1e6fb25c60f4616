"""Service context: one instance of every core component.

Built once per application (or per test) and torn down with ``aclose``.
Components never read configuration on their own; everything they need
is passed in here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from mapper.cache import ResponseCache
from mapper.geocoding.service import GeocodingService
from mapper.layers.service import LayerService
from mapper.records.client import RecordClient
from mapper.records.service import MapDataService
from mapper.store.base import FileStoreBackend
from mapper.store.drive import DriveBackend
from mapper.store.files import FileStoreAdapter
from mapper.store.memory import MemoryBackend
from mapper.store.metadata import LayerMetadataStore
from mapper.upload.wizard import UploadWizard


@dataclass
class ServiceContext:
    records: RecordClient
    cache: ResponseCache
    map_data: MapDataService
    backend: FileStoreBackend
    files: FileStoreAdapter
    metadata: LayerMetadataStore
    layers: LayerService
    geocoder: GeocodingService
    uploads: UploadWizard
    kml_max_age: int = 3600

    async def aclose(self) -> None:
        await self.records.aclose()
        await self.backend.aclose()
        await self.geocoder.aclose()
        logger.debug("Service context closed")


def make_backend(settings: Any) -> FileStoreBackend:
    """File store backend selected by ``settings.file_store_backend``."""
    kind = settings.file_store_backend
    if kind == "memory":
        return MemoryBackend()
    if kind == "drive":
        return DriveBackend(
            settings.drive_access_token,
            api_url=settings.drive_api_url,
            upload_url=settings.drive_upload_url,
        )
    raise ValueError(f"Unknown file store backend: {kind}")


def build_context(
    settings: Any,
    records: RecordClient | None = None,
    backend: FileStoreBackend | None = None,
    geocoder: GeocodingService | None = None,
) -> ServiceContext:
    """Wire every component from ``settings``.

    Args:
        settings: Object exposing the application settings fields.
        records: Record client to use instead of building one.
        backend: File store backend to use instead of building one.
        geocoder: Geocoding service to use instead of building one.
    """
    records = records or RecordClient(
        settings.notion_token,
        base_url=settings.notion_api_url,
        api_version=settings.notion_version,
    )
    cache = ResponseCache(settings.cache_dir)
    map_data = MapDataService(
        records,
        cache=cache,
        ttl=settings.map_data_ttl,
        max_hops=settings.max_parent_hops,
        inclusion_filter=settings.inclusion_filter,
    )

    backend = backend or make_backend(settings)
    files = FileStoreAdapter(backend, soft_delete_marker=settings.soft_delete_marker)
    metadata = LayerMetadataStore(files, file_name=settings.metadata_file_name)
    layers = LayerService(records, files, metadata, root_folder=settings.drive_root_folder)

    geocoder = geocoder or GeocodingService(
        url=settings.geocoder_url,
        user_agent=settings.geocoder_user_agent,
        min_interval=settings.geocode_min_interval,
        timeout=settings.geocode_timeout,
        batch_size=settings.geocode_batch_size,
        default_country=settings.geocode_country,
    )
    uploads = UploadWizard(
        layers,
        geocoder,
        max_file_size=settings.upload_max_file_size,
        max_rows=settings.upload_max_rows,
    )

    logger.info(f"Service context ready (file store: {type(backend).__name__})")
    return ServiceContext(
        records=records,
        cache=cache,
        map_data=map_data,
        backend=backend,
        files=files,
        metadata=metadata,
        layers=layers,
        geocoder=geocoder,
        uploads=uploads,
        kml_max_age=settings.kml_max_age,
    )
