"""Single-address geocoding through the shared rate-limited geocoder."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.dependencies import get_context
from mapper.context import ServiceContext
from mapper.errors import MissingParameterError

router = APIRouter(prefix="/api", tags=["geo"])


class GeocodeRequest(BaseModel):
    """Address parts and/or known coordinates."""
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    country: str | None = None
    latitude: str | float | None = None
    longitude: str | float | None = None


class GeocodeResponse(BaseModel):
    """Geocoding result."""
    lat: float
    lng: float
    confidence: float
    formattedAddress: str | None = None
    source: str
    placeId: int | str | None = None


@router.post("/geocode", response_model=GeocodeResponse, response_model_exclude_none=True)
async def geocode(request: GeocodeRequest, ctx: ServiceContext = Depends(get_context)):
    """Geocode one address.

    Provider calls share the application-wide queue, so this endpoint
    respects the same minimum interval as batch imports.
    """
    fields = request.model_dump(exclude_none=True)
    if not any(fields.get(k) for k in ("address", "city", "state", "zipcode", "latitude")):
        raise MissingParameterError("address")
    result = await ctx.geocoder.geocode(fields)
    return result.to_dict()
