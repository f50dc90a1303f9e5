"""
RSS Digest API Server

FastAPI application providing endpoints for:
- The per-site article digest
- Health check
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from . import __version__
from .config import config, state
from .cache import DigestCache
from .exceptions import DigestError, error_payload
from .pipeline import DigestPipeline, PipelineSettings
from .routes import digest_router, misc_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize application resources."""
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Startup - skip if already initialized (e.g., by tests)
    if state.pipeline is None:
        state.cache = DigestCache(
            ttl_seconds=config.CACHE_TTL_SECONDS,
            cooldown_seconds=config.COOLDOWN_SECONDS,
        )
        state.pipeline = DigestPipeline(PipelineSettings.from_config(config), state.cache)

        if not config.has_credentials():
            logger.warning("RSS_USER / RSS_PASS not set. Digest requests will fail until configured.")

    yield


async def digest_error_handler(request: Request, exc: DigestError) -> JSONResponse:
    """Upstream failure with nothing cached to fall back on."""
    return JSONResponse(status_code=502, content=exc.to_payload())


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload("Request failed", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_middleware(request: Request, call_next):
    """Turn unexpected errors into the JSON error shape inside the CORS layer."""
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=error_payload(DigestError.error, str(exc)),
        )


app = FastAPI(
    title="RSS Digest API",
    version=__version__,
    lifespan=lifespan
)

# Registered before CORS so that CORS wraps it and 500s carry the allow-origin header
app.middleware("http")(unhandled_error_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.ALLOWED_ORIGIN],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.add_exception_handler(DigestError, digest_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)

# Include routers
app.include_router(misc_router)
app.include_router(digest_router)
