"""Map data: a record id in, the owning dataset's points out."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger

from app.dependencies import get_context
from mapper.context import ServiceContext
from mapper.errors import MapperError, MissingParameterError, ValidationError

router = APIRouter(prefix="/api", tags=["map-data"])

_DETAILS = "Check that the id is correct and that the integration has access to the page"


@router.get("/map-data")
async def map_data(
    record_id: str | None = Query(None, alias="recordId"),
    legacy_id: str | None = Query(None, alias="id"),
    ctx: ServiceContext = Depends(get_context),
):
    """Points of the dataset that owns ``recordId`` (``id`` is accepted too).

    Responses are cached; ``X-Cache`` reports HIT or MISS.
    """
    record_id = record_id or legacy_id
    if not record_id:
        raise MissingParameterError("recordId")

    try:
        result = await ctx.map_data.get_map_data(record_id)
    except ValidationError:
        raise
    except MapperError as e:
        logger.error(f"Map data failed for {record_id}: {e}")
        return JSONResponse(status_code=500, content={"error": str(e), "details": _DETAILS})

    return JSONResponse(
        content=result.payload,
        headers={"X-Cache": "HIT" if result.cache_hit else "MISS"},
    )
