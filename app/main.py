# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.exceptions import CatalogError, InvalidInput, UpstreamError
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import user as _user_models  # noqa: F401
from app.models import product as _product_models  # noqa: F401

# Routers
from app.routers.products import router as products_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield
    logger.info("Shutdown: catalog backend stopped.")


app = FastAPI(
    title=settings.PROJECT_NAME or "Catalog Backend",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(products_router, prefix=settings.API_V1_STR)


# --- Error mapping ---


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    """
    Map service errors to status codes.

    Upstream failures are logged with their cause and returned as a
    generic "Server error"; their message never reaches the client.
    """
    if isinstance(exc, UpstreamError):
        logger.error(
            "%s %s failed upstream: %s (details=%s)",
            request.method,
            request.url.path,
            exc.__cause__ or exc,
            exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content={"message": "Server error"})

    logger.info(
        "%s %s rejected (%d): %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.message,
    )
    content = {"message": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed form/query values (e.g. non-numeric price) are InvalidInput."""
    fields = [".".join(str(p) for p in err["loc"][1:]) for err in exc.errors()]
    return await catalog_error_handler(
        request, InvalidInput("Invalid request fields", details={"fields": fields})
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Auth failures (401) and routing errors keep their status."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Anything unanticipated: log the traceback, return a bare 500."""
    logger.exception("Unhandled error in %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error"})


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "catalog-backend"}
