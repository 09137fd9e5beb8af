import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fruitgacha.api import (
    admin_router,
    collection_router,
    economy_router,
    health_router,
    pulls_router,
)
from fruitgacha.config import settings
from fruitgacha.db.database import init_db
from fruitgacha.models.failure import CooldownError, FailureResponse, KnownError, StorageError
from fruitgacha.services.catalog import get_catalog

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # A malformed catalog should stop startup, not the first pull
    get_catalog()
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("fruitgacha"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(request: Request, exc: KnownError) -> JSONResponse:
    """Render a KnownError as a FailureResponse with its own status code."""
    if isinstance(exc, StorageError):
        logger.error(
            "STORAGE_FAILURE_RESPONSE",
            extra={"path": request.url.path, "detail": exc.detail},
        )
    else:
        logger.info(
            "KNOWN_ERROR_RESPONSE",
            extra={"path": request.url.path, "kind": exc.kind.value},
        )

    headers = None
    if isinstance(exc, CooldownError):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content=FailureResponse(failure=exc.to_detail()).model_dump(mode="json"),
        headers=headers,
    )


app.include_router(admin_router)
app.include_router(collection_router)
app.include_router(economy_router)
app.include_router(health_router)
app.include_router(pulls_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
