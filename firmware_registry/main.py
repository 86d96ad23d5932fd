import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, configure_logging, settings as default_settings
from .errors import MissingFile, RegistryError, StoreUnavailable
from .routers import version_router, firmware_router
from .schemas import InfoOut
from .store import FirmwareRegistry

logger = logging.getLogger(__name__)


async def registry_error_handler(request: Request, exc: RegistryError):
    if isinstance(exc, StoreUnavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures in the same {"error": ...} envelope."""
    errors = exc.errors()
    # A form field named firmware that is not a file counts as no file at all
    if any(tuple(e.get("loc", ()))[-1:] == ("firmware",) for e in errors):
        message = MissingFile.message
    else:
        message = "; ".join(f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in errors)
    logger.warning("%s %s rejected: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Settings | None = None, registry: FirmwareRegistry | None = None) -> FastAPI:
    settings = settings or default_settings
    registry = registry or FirmwareRegistry.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: make sure the storage root and version record exist
        configure_logging(settings.log_level)
        registry.bootstrap()
        yield

    app = FastAPI(
        title="OTA Firmware Registry",
        description="Serves a single firmware image and its version to OTA devices",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry

    app.add_exception_handler(RegistryError, registry_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info("%s %s -> %d", request.method, request.url.path, response.status_code)
        return response

    app.include_router(version_router)
    app.include_router(firmware_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/", response_model=InfoOut)
    async def root():
        """Root endpoint with API info."""
        return InfoOut(
            message="OTA Firmware Update Server",
            endpoints={
                "version": "GET /version",
                "firmware": "GET /firmware",
                "update": 'POST /update (multipart/form-data with "firmware" file and "version" field)',
                "check": "GET /check?version=x.x.x",
            },
        )

    return app


app = create_app()
