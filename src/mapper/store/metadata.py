"""Layer metadata side-car document.

One JSON document per project folder holds the style, visibility and
display name of every layer, keyed by the layer's file id. Reads and
writes replace the whole document; concurrent writers are last-write-wins.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from loguru import logger

from mapper.store.base import JSON_MIME
from mapper.store.files import FileStoreAdapter

DEFAULT_METADATA_FILE = ".metadata.json"
DEFAULT_COLOR = "#e74c3c"
DEFAULT_ICON = "pin"


@dataclass
class LayerStyle:
    """Metadata entry for one layer.

    Attributes:
        name: Display name.
        color: Marker color as ``#rrggbb``.
        icon: Icon identifier.
        visible: Whether the layer is drawn.
        opacity: Rendering opacity (0.0 to 1.0).
        file: File name in the store at creation time.
        created: ISO8601 creation timestamp.
        point_count: Number of features, when known at upload time.
    """

    name: str
    color: str = DEFAULT_COLOR
    icon: str = DEFAULT_ICON
    visible: bool = True
    opacity: float = 1.0
    file: str = ""
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    point_count: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        point_count = data.pop("point_count")
        if point_count:
            data["pointCount"] = point_count
        return data

    @classmethod
    def from_dict(cls, data: dict) -> LayerStyle:
        visible = data.get("visible")
        opacity = data.get("opacity")
        return cls(
            name=data.get("name", ""),
            color=data.get("color") or DEFAULT_COLOR,
            icon=data.get("icon") or DEFAULT_ICON,
            visible=visible is not False,
            opacity=1.0 if opacity is None else float(opacity),
            file=data.get("file", ""),
            created=data.get("created", ""),
            point_count=int(data.get("pointCount") or 0),
        )


@dataclass
class LayerMetadataDocument:
    """``{project: {id, name}, layers: {layerId: LayerStyle}}``."""

    project_id: str
    project_name: str
    layers: dict[str, LayerStyle] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "project": {"id": self.project_id, "name": self.project_name},
            "layers": {lid: style.to_dict() for lid, style in self.layers.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> LayerMetadataDocument:
        project = data.get("project") or {}
        layers = data.get("layers") or {}
        return cls(
            project_id=project.get("id", ""),
            project_name=project.get("name", ""),
            layers={lid: LayerStyle.from_dict(entry) for lid, entry in layers.items()},
        )


class LayerMetadataStore:
    """Reads and upserts the metadata document in a project folder."""

    def __init__(self, files: FileStoreAdapter, file_name: str = DEFAULT_METADATA_FILE) -> None:
        self.files = files
        self.file_name = file_name

    async def read(self, folder_id: str) -> LayerMetadataDocument | None:
        """Load the folder's metadata document.

        Returns None when the file is missing or its content cannot be
        parsed. Store failures propagate, so callers never mistake an
        unreachable document for an absent one and overwrite it.

        Raises:
            StoreOperationError: the store could not be queried or read.
        """
        desc = await self.files.find_file(folder_id, self.file_name)
        if desc is None:
            return None
        try:
            raw = await self.files.read_file(desc.file_id)
            return LayerMetadataDocument.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Unparseable layer metadata in {folder_id}: {e}")
            return None

    async def write(self, folder_id: str, document: LayerMetadataDocument) -> None:
        """Replace the folder's metadata document, creating it if needed."""
        body = json.dumps(document.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        desc = await self.files.put_file(folder_id, self.file_name, body, JSON_MIME)
        logger.debug(f"Wrote layer metadata {desc.file_id} ({len(document.layers)} layers)")
