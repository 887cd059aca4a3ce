"""FastAPI application initialization."""

import os
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from property_ingest import __version__
from property_ingest.api import configurations, health, imports
from property_ingest.config import get_settings
from property_ingest.exceptions import (
    GenerationFailedError,
    GenerationPreconditionError,
    IngestionError,
    ProviderTimeoutError,
    SourceUnavailableError,
)
from property_ingest.logging_config import setup_logfire

# Most specific first: the first matching class decides the status code
ERROR_STATUS_CODES: tuple[tuple[type[IngestionError], int], ...] = (
    (ProviderTimeoutError, 504),
    (SourceUnavailableError, 502),
    (GenerationPreconditionError, 409),
    (GenerationFailedError, 502),
)


def status_code_for(exc: IngestionError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    # Initialize Logfire for observability
    setup_logfire(app)

    # Initialize Sentry if DSN is provided
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            send_default_pii=False,
            integrations=[FastApiIntegration()],
        )

    logfire.info(
        "Application startup complete",
        model=settings.default_model,
        environment=settings.env,
        persistence=bool(settings.supabase_url),
    )

    yield

    logfire.info("Application shutdown complete")


app = FastAPI(
    title="Property Ingest",
    description="Turns property listing URLs into versioned page configurations",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError):
    status_code = status_code_for(exc)
    logfire.warning(
        "Ingestion request failed",
        path=request.url.path,
        kind=exc.kind,
        status_code=status_code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Register routers
app.include_router(health.router, tags=["health"])
app.include_router(imports.router, prefix="/imports", tags=["imports"])
app.include_router(
    configurations.router, prefix="/configurations", tags=["configurations"]
)


@app.get("/")
def root():
    """Root endpoint."""
    settings = get_settings()
    return {
        "message": "Property Ingest API",
        "model": settings.default_model,
        "version": __version__,
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "property_ingest.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "local",
    )
