"""Upload wizard: one file in, one new layer out.

KML files are validated and stored as-is. Tabular files go through
column auto-mapping, an optional confirmation step owned by the caller,
batch geocoding and KML encoding before being stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Awaitable, Callable

from loguru import logger

from mapper.errors import (
    EmptyFileError,
    FileTooLargeError,
    InvalidKmlError,
    TooManyRowsError,
    UnsupportedFileTypeError,
)
from mapper.geocoding.columns import auto_map_columns
from mapper.geocoding.service import GeocodingService, ProgressCallback
from mapper.layers.exporters.kml import to_kml
from mapper.layers.feature import Feature, FeatureCollection
from mapper.layers.parsers.csv_import import Table, parse_csv
from mapper.layers.parsers.kml import parse_kml, validate_kml
from mapper.layers.service import LayerService

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_MAX_ROWS = 5000

TABULAR_EXTENSIONS = {"csv", "xls", "xlsx"}
KML_EXTENSION = "kml"

# Batch bookkeeping fields that are not written to the layer
_RESULT_ONLY_FIELDS = {"success", "error"}

ConfirmMapping = Callable[[Table, dict], Awaitable[dict]]


@dataclass
class UploadOutcome:
    """What an upload produced.

    Attributes:
        layer_id: File id of the new layer.
        file_name: Stored file name.
        point_count: Features written to the layer.
        failed_rows: Tabular rows that could not be geocoded.
    """

    layer_id: str
    file_name: str
    point_count: int
    failed_rows: int = 0

    def to_dict(self) -> dict:
        return {
            "success": True,
            "layerId": self.layer_id,
            "fileName": self.file_name,
            "pointCount": self.point_count,
            "failedRows": self.failed_rows,
        }


class UploadWizard:
    """Validates, converts and stores an uploaded file as a layer."""

    def __init__(
        self,
        layers: LayerService,
        geocoder: GeocodingService,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        max_rows: int = DEFAULT_MAX_ROWS,
    ) -> None:
        self.layers = layers
        self.geocoder = geocoder
        self.max_file_size = max_file_size
        self.max_rows = max_rows

    async def run(
        self,
        project_id: str,
        file_name: str,
        content: bytes | str,
        confirm_mapping: ConfirmMapping | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadOutcome:
        """Ingest one file.

        Args:
            project_id: Project record id.
            file_name: Original file name; its extension selects the flow.
            content: Raw file content.
            confirm_mapping: Awaited with the parsed table and the detected
                column mapping; returns the mapping to use. When omitted the
                detected mapping is used as-is.
            on_progress: Called with (completed, total) during geocoding.

        Raises:
            FileTooLargeError, UnsupportedFileTypeError, EmptyFileError,
            TooManyRowsError, InvalidKmlError.
        """
        data = content.encode("utf-8") if isinstance(content, str) else content
        if len(data) > self.max_file_size:
            raise FileTooLargeError(len(data), self.max_file_size)

        path = PurePosixPath(file_name)
        extension = path.suffix.lstrip(".").lower()
        logger.info(f"Upload {file_name} ({len(data)} bytes) for project {project_id}")

        if extension == KML_EXTENSION:
            return await self._ingest_kml(project_id, path.stem, data)
        if extension in TABULAR_EXTENSIONS:
            return await self._ingest_table(
                project_id, file_name, path.stem, data, confirm_mapping, on_progress
            )
        raise UnsupportedFileTypeError(file_name)

    async def _ingest_kml(self, project_id: str, stem: str, data: bytes) -> UploadOutcome:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidKmlError("KML is not UTF-8 text") from None

        validation = validate_kml(text)
        if not validation.valid:
            raise InvalidKmlError(validation.error)

        point_count = len(parse_kml(text))
        uploaded = await self.layers.upload(project_id, f"{stem}.kml", text, point_count)
        return UploadOutcome(uploaded.layer_id, uploaded.file_name, point_count)

    async def _ingest_table(
        self,
        project_id: str,
        file_name: str,
        stem: str,
        data: bytes,
        confirm_mapping: ConfirmMapping | None,
        on_progress: ProgressCallback | None,
    ) -> UploadOutcome:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise UnsupportedFileTypeError(file_name, "only UTF-8 text tables are supported") from None

        table = parse_csv(text)
        if table is None or not table.rows:
            raise EmptyFileError(f"File is empty: {file_name}")
        if len(table.rows) > self.max_rows:
            raise TooManyRowsError(len(table.rows), self.max_rows)

        mapping = auto_map_columns(table.headers)
        if confirm_mapping is not None:
            mapping = await confirm_mapping(table, mapping)

        results = await self.geocoder.geocode_batch(table.records(mapping), on_progress)
        features = [
            Feature(
                geometry_type="Point",
                coordinates=[r["lng"], r["lat"]],
                properties={k: v for k, v in r.items() if k not in _RESULT_ONLY_FIELDS},
            )
            for r in results
            if r["success"]
        ]
        failed = len(results) - len(features)
        if not features:
            logger.warning(f"No row of {file_name} could be geocoded")

        kml = to_kml(FeatureCollection(features), layer_name=stem)
        uploaded = await self.layers.upload(project_id, f"{stem}.kml", kml, len(features))
        return UploadOutcome(uploaded.layer_id, uploaded.file_name, len(features), failed)
