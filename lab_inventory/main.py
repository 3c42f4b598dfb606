import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lab_inventory.api.v1.router import api_router
from lab_inventory.core.config import get_settings
from lab_inventory.core.database import init_db
from lab_inventory.core.errors import InventoryError, ValidationError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.database_auto_create:
        logger.info("Creating inventory tables (database_auto_create=True)")
        init_db()
    yield


app = FastAPI(
    title="Lab Inventory Service",
    lifespan=lifespan,
)


def _error_response(exc: InventoryError) -> JSONResponse:
    body = exc.as_dict()
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": body["message"], "code": body["code"], "data": body["data"]},
    )


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= status.HTTP_409_CONFLICT:
        logger.warning("%s %s -> %r", request.method, request.url.path, exc)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Schema-level failures (empty name, unknown kind, quantity <= 0) are
    reported with the same shape as service-level ValidationError.
    """
    errors = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
    fields = [".".join(str(p) for p in e.get("loc", ())[1:]) for e in errors]
    return _error_response(
        ValidationError(
            "Invalid request.",
            field=", ".join(f for f in fields if f) or None,
            errors=errors,
        )
    )


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
