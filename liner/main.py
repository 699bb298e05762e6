"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from liner.config import get_settings
from liner.db import close_db, init_db
from liner_core.errors import (
    Conflict,
    Forbidden,
    LinerError,
    NotFound,
    Unauthenticated,
    UpstreamFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    Unauthenticated: 401,
    Forbidden: 403,
    NotFound: 404,
    ValidationError: 400,
    UpstreamFailure: 502,
    Conflict: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    logger.info("DB ready at %s", settings.db_abs_path)
    yield
    await close_db()
    logger.info("DB closed")


app = FastAPI(
    title="liner",
    version="0.1.0",
    lifespan=lifespan,
)


def status_for(exc: LinerError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return 500


@app.exception_handler(LinerError)
async def liner_error_handler(request: Request, exc: LinerError):
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.detail, exc.kind)
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse({"error": exc.kind, "detail": exc.detail}, status_code=status, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = f"{where}: {first.get('msg', 'invalid value')}" if where else "Invalid request body"
    return JSONResponse({"error": ValidationError.kind, "detail": detail}, status_code=400)


# Routers
from liner.routes_comments import router as comments_router  # noqa: E402
from liner.routes_playlists import router as playlists_router  # noqa: E402
from liner.routes_share import router as share_router  # noqa: E402
from liner.routes_shared import router as shared_router  # noqa: E402

app.include_router(playlists_router)
app.include_router(comments_router)
app.include_router(share_router)
app.include_router(shared_router)


@app.get("/health")
async def health():
    """Simple health-check endpoint."""
    return JSONResponse({"status": "ok", "version": app.version})
