"""Layer lifecycle for a project: list, upload, rename, soft-delete, restyle.

A layer is a KML file in the project's folder plus an entry in the
folder's metadata document. File and metadata writes are separate calls
with no compensating action if the second one fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from mapper.errors import (
    InvalidActionError,
    LayerMetadataNotFoundError,
    LayerNotFoundError,
    MissingParameterError,
)
from mapper.layers.feature import Layer
from mapper.records.client import RecordClient, normalize_record_id
from mapper.records.resolver import resolve_title
from mapper.store.base import FileDescriptor
from mapper.store.files import FileStoreAdapter, strip_kml_extension
from mapper.store.metadata import LayerMetadataDocument, LayerMetadataStore, LayerStyle

DEFAULT_ROOT_FOLDER = "Mapeamento_OOH"


class LayerAction(str, Enum):
    RENAME = "rename"
    DELETE = "delete"
    UPDATE_STYLE = "update_style"


@dataclass
class LayerListing:
    project_id: str
    project_name: str
    folder_id: str
    layers: list[Layer] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "folderId": self.folder_id,
            "layers": [layer.to_dict() for layer in self.layers],
            "layerCount": len(self.layers),
        }


@dataclass
class UploadedLayer:
    layer_id: str
    file_name: str


class LayerService:
    """Composes the file store adapter and the metadata store per project."""

    def __init__(
        self,
        client: RecordClient,
        files: FileStoreAdapter,
        metadata: LayerMetadataStore,
        root_folder: str = DEFAULT_ROOT_FOLDER,
    ) -> None:
        self.client = client
        self.files = files
        self.metadata = metadata
        self.root_folder = root_folder
        self._actions = {
            LayerAction.RENAME: self._rename,
            LayerAction.DELETE: self._delete,
            LayerAction.UPDATE_STYLE: self._update_style,
        }
        missing = set(LayerAction) - set(self._actions)
        if missing:
            raise RuntimeError(f"No handler for layer actions: {sorted(a.value for a in missing)}")

    async def project_folder(self, project_id: str) -> tuple[str, str]:
        """Resolve the project's display name and find-or-create its folder.

        Returns:
            (project_name, folder_id)
        """
        project_name = await resolve_title(self.client, normalize_record_id(project_id))
        folder_id = await self.files.get_or_create_path(self.root_folder, project_name)
        return project_name, folder_id

    async def list_layers(self, project_id: str) -> LayerListing:
        """Active layer files left-joined with their metadata entries."""
        project_name, folder_id = await self.project_folder(project_id)
        active = await self.files.list_active_files(folder_id)
        document = await self.metadata.read(folder_id)
        entries = document.layers if document else {}

        layers = []
        for desc in active:
            layer = Layer(
                layer_id=desc.file_id,
                name=strip_kml_extension(desc.name),
                file_name=desc.name,
                kml_url=desc.content_url,
                size=desc.size,
                modified_time=desc.modified_time,
            )
            style = entries.get(desc.file_id)
            if style is not None:
                layer.color = style.color
                layer.icon = style.icon
                layer.visible = style.visible
                layer.opacity = style.opacity
                layer.point_count = style.point_count
            layers.append(layer)

        logger.info(f"Project {project_name}: {len(layers)} active layers")
        return LayerListing(project_id, project_name, folder_id, layers)

    async def upload(
        self, project_id: str, file_name: str, kml_content: str, point_count: int = 0
    ) -> UploadedLayer:
        """Store a new KML file and register it with default style."""
        project_name, folder_id = await self.project_folder(project_id)
        desc = await self.files.upload_file(folder_id, file_name, kml_content)

        document = await self.metadata.read(folder_id) or LayerMetadataDocument(
            project_id=project_id, project_name=project_name
        )
        document.layers[desc.file_id] = LayerStyle(
            name=strip_kml_extension(file_name),
            file=desc.name,
            point_count=point_count,
        )
        await self.metadata.write(folder_id, document)

        logger.info(f"Layer {desc.file_id} created in {project_name}")
        return UploadedLayer(layer_id=desc.file_id, file_name=desc.name)

    async def manage(
        self, action: str | LayerAction, project_id: str, layer_id: str, **params
    ) -> dict:
        """Apply ``action`` to a layer.

        Args:
            action: One of the LayerAction values.
            project_id: Project record id.
            layer_id: File id of the layer.
            **params: ``new_name`` for rename; ``color``, ``icon``,
                ``visible``, ``opacity`` for update_style.

        Returns:
            ``{"message": ...}``

        Raises:
            InvalidActionError: unknown action.
            LayerNotFoundError: the file is not in the project folder.
            LayerMetadataNotFoundError: update_style on a layer with no entry.
        """
        try:
            action = LayerAction(action)
        except ValueError:
            raise InvalidActionError(str(action)) from None

        _, folder_id = await self.project_folder(project_id)
        await self._project_file(folder_id, layer_id)
        logger.info(f"Layer {layer_id}: {action.value}")
        return await self._actions[action](folder_id, layer_id, **params)

    async def read_kml(self, project_id: str, layer_id: str) -> str:
        """Content of an active layer file of the project.

        Raises:
            LayerNotFoundError: the file is outside the project folder,
                soft-deleted, trashed or not a KML layer.
        """
        _, folder_id = await self.project_folder(project_id)
        desc = await self._project_file(folder_id, layer_id)
        if not self.files.is_active(desc):
            raise LayerNotFoundError(layer_id)
        logger.debug(f"Reading KML {layer_id} for project {project_id}")
        return await self.files.read_file(layer_id)

    async def _project_file(self, folder_id: str, layer_id: str) -> FileDescriptor:
        desc = await self.files.get_file(layer_id)
        if folder_id not in desc.parents:
            raise LayerNotFoundError(layer_id)
        return desc

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _rename(self, folder_id: str, layer_id: str, new_name: str | None = None, **_) -> dict:
        if not new_name:
            raise MissingParameterError("newName")
        await self.files.rename_file(layer_id, new_name)
        document = await self.metadata.read(folder_id)
        if document is not None and layer_id in document.layers:
            document.layers[layer_id].name = new_name
            await self.metadata.write(folder_id, document)
        return {"message": "Layer renamed"}

    async def _delete(self, folder_id: str, layer_id: str, **_) -> dict:
        # Metadata entry is left untouched
        await self.files.soft_delete(layer_id)
        return {"message": "Layer deleted"}

    async def _update_style(
        self,
        folder_id: str,
        layer_id: str,
        color: str | None = None,
        icon: str | None = None,
        visible: bool | None = None,
        opacity: float | None = None,
        **_,
    ) -> dict:
        document = await self.metadata.read(folder_id)
        if document is None or layer_id not in document.layers:
            raise LayerMetadataNotFoundError(layer_id)

        style = document.layers[layer_id]
        if color:
            style.color = color
        if icon:
            style.icon = icon
        if visible is not None:
            style.visible = bool(visible)
        if opacity is not None:
            style.opacity = min(1.0, max(0.0, float(opacity)))
        await self.metadata.write(folder_id, document)
        return {"message": "Style updated"}
