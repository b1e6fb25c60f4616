"""Map core exceptions onto JSON error responses.

ValidationError -> 400, any other MapperError or unexpected exception ->
500, unknown route or method -> 404 with the list of known routes. Every body is
``{"error": message}``. OPTIONS requests that reach no route (plain
requests without CORS preflight headers) get an empty 204.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from mapper.errors import MapperError, ValidationError

AVAILABLE_ROUTES = [
    "GET  /api/map-data?recordId=XXX",
    "GET  /api/layer-list?projectId=XXX",
    "POST /api/layer-upload",
    "POST /api/layer-manage",
    "GET  /api/kml-data?layerId=XXX&projectId=XXX",
    "POST /api/layer-import",
    "POST /api/geocode",
]


async def mapper_error_handler(request: Request, exc: MapperError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        logger.info(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if request.method == "OPTIONS" and exc.status_code in (404, 405):
        return Response(status_code=204)
    if exc.status_code in (404, 405):
        return JSONResponse(
            status_code=404,
            content={"error": "Route not found", "available": AVAILABLE_ROUTES},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path}: malformed request")
    return JSONResponse(
        status_code=400,
        content={"error": "Malformed request", "details": jsonable_encoder(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Runs outside CORSMiddleware, so the CORS header is added here
    logger.exception(f"{request.method} {request.url.path} crashed: {exc!r}")
    return JSONResponse(
        status_code=500,
        content={"error": str(exc) or type(exc).__name__},
        headers={"Access-Control-Allow-Origin": "*"},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(MapperError, mapper_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
