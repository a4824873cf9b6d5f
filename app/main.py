"""FastAPI application entrypoint. No business logic; only wiring, error mapping and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1 import router as v1_router
from app.core.config import get_settings
from app.core.database import StoreContext
from app.core.errors import (
    ConflictError,
    NotFoundError,
    StackwatchError,
    StoreError,
    UpstreamUnavailable,
    ValidationError,
)
from app.services.delivery import DeliveryChannel
from app.services.version_source import VersionSource
from app.services.vulnerability_source import VulnerabilitySource

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[StackwatchError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    UpstreamUnavailable: status.HTTP_502_BAD_GATEWAY,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def handle_pipeline_error(request: Request, exc: StackwatchError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


def create_app(
    store: StoreContext | None = None,
    version_source: VersionSource | None = None,
    vulnerability_source: VulnerabilitySource | None = None,
    delivery: DeliveryChannel | None = None,
) -> FastAPI:
    """
    Build the API. A StoreContext passed in is used as-is and left open on
    shutdown (tests); otherwise one is created from DATABASE_URL for the
    lifetime of the app.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = store is None
        app.state.store = store or StoreContext(settings.DATABASE_URL, echo=settings.DEBUG)
        logger.info("Store opened (env=%s)", settings.APP_ENV)
        try:
            yield
        finally:
            if owned:
                app.state.store.dispose()
                logger.info("Store disposed")

    app = FastAPI(
        title="Stackwatch API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if store is not None:
        app.state.store = store
    app.state.version_source = version_source
    app.state.vulnerability_source = vulnerability_source
    app.state.delivery = delivery

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StackwatchError, handle_pipeline_error)
    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Stackwatch API"}

    return app


app = create_app()
