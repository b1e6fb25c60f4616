"""Layer endpoints: list, upload, manage, KML download and file import."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from app.dependencies import get_context
from mapper.context import ServiceContext
from mapper.errors import MissingParameterError
from mapper.store.base import KML_MIME

router = APIRouter(prefix="/api", tags=["layers"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LayerUploadRequest(_CamelModel):
    """Store a KML document as a new layer."""
    project_id: str | None = Field(None, alias="projectId")
    file_name: str | None = Field(None, alias="fileName")
    kml_data: str | None = Field(None, alias="kmlData")


class LayerManageRequest(_CamelModel):
    """Rename, soft-delete or restyle a layer."""
    action: str | None = None
    project_id: str | None = Field(None, alias="projectId")
    layer_id: str | None = Field(None, alias="layerId")
    new_name: str | None = Field(None, alias="newName")
    color: str | None = None
    icon: str | None = None
    visible: bool | None = None
    opacity: float | None = None


class LayerImportRequest(_CamelModel):
    """Run the upload wizard on a CSV or KML file sent as text."""
    project_id: str | None = Field(None, alias="projectId")
    file_name: str | None = Field(None, alias="fileName")
    content: str | None = None
    mapping: dict[str, str] | None = None


def _require(**values) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise MissingParameterError(*missing)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/layer-list")
async def layer_list(
    project_id: str | None = Query(None, alias="projectId"),
    record_id: str | None = Query(None, alias="recordId"),
    ctx: ServiceContext = Depends(get_context),
):
    """Active layers of a project, merged with their style metadata."""
    project_id = project_id or record_id
    _require(projectId=project_id)
    listing = await ctx.layers.list_layers(project_id)
    return listing.to_dict()


@router.post("/layer-upload")
async def layer_upload(body: LayerUploadRequest, ctx: ServiceContext = Depends(get_context)):
    _require(projectId=body.project_id, fileName=body.file_name, kmlData=body.kml_data)
    uploaded = await ctx.layers.upload(body.project_id, body.file_name, body.kml_data)
    return {
        "success": True,
        "layerId": uploaded.layer_id,
        "fileName": uploaded.file_name,
        "message": "Layer created",
    }


@router.post("/layer-manage")
async def layer_manage(body: LayerManageRequest, ctx: ServiceContext = Depends(get_context)):
    """Apply ``rename``, ``delete`` or ``update_style`` to a layer."""
    _require(action=body.action, projectId=body.project_id, layerId=body.layer_id)
    result = await ctx.layers.manage(
        body.action,
        body.project_id,
        body.layer_id,
        new_name=body.new_name,
        color=body.color,
        icon=body.icon,
        visible=body.visible,
        opacity=body.opacity,
    )
    return {"success": True, **result}


@router.get("/kml-data")
async def kml_data(
    layer_id: str | None = Query(None, alias="layerId"),
    project_id: str | None = Query(None, alias="projectId"),
    ctx: ServiceContext = Depends(get_context),
):
    """Raw KML of a layer, cacheable by the browser."""
    _require(layerId=layer_id, projectId=project_id)
    content = await ctx.layers.read_kml(project_id, layer_id)
    return Response(
        content=content,
        media_type=KML_MIME,
        headers={"Cache-Control": f"public, max-age={ctx.kml_max_age}"},
    )


@router.post("/layer-import")
async def layer_import(body: LayerImportRequest, ctx: ServiceContext = Depends(get_context)):
    """Ingest a CSV or KML file; ``mapping`` overrides the detected columns."""
    _require(projectId=body.project_id, fileName=body.file_name, content=body.content)

    confirm = None
    if body.mapping is not None:
        async def confirm(table, detected):
            return body.mapping

    outcome = await ctx.uploads.run(
        body.project_id, body.file_name, body.content, confirm_mapping=confirm
    )
    return outcome.to_dict()
