"""API routers."""

from app.routers.geo import router as geo_router
from app.routers.layers import router as layers_router
from app.routers.map_data import router as map_data_router

__all__ = ["geo_router", "layers_router", "map_data_router"]
