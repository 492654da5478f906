"""
dapdip.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn dapdip.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.staticfiles import StaticFiles

load_dotenv()

from dapdip.api.auth import router as auth_router  # noqa: E402
from dapdip.api.deps import get_config, get_engine  # noqa: E402
from dapdip.api.rate_limit import configure_rate_limiter  # noqa: E402
from dapdip.api.routes.admin import router as admin_router  # noqa: E402
from dapdip.api.routes.ai import router as ai_router  # noqa: E402
from dapdip.api.routes.audio import router as audio_router  # noqa: E402
from dapdip.api.routes.better_me import router as better_me_router  # noqa: E402
from dapdip.api.routes.comments import router as comments_router  # noqa: E402
from dapdip.api.routes.follows import router as follows_router  # noqa: E402
from dapdip.api.routes.media import router as media_router  # noqa: E402
from dapdip.api.routes.messages import router as messages_router  # noqa: E402
from dapdip.api.routes.notifications import router as notifications_router  # noqa: E402
from dapdip.api.routes.posts import router as posts_router  # noqa: E402
from dapdip.api.routes.reels import router as reels_router  # noqa: E402
from dapdip.api.routes.stories import router as stories_router  # noqa: E402
from dapdip.api.routes.users import router as users_router  # noqa: E402
from dapdip.errors import ServiceError, TooManyRequestsError  # noqa: E402
from dapdip.services.log_buffer import install_handler  # noqa: E402
from dapdip.services.upload_service import UPLOAD_DIR, ensure_upload_dir  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine and the limiter."""
    # Uvicorn reconfigures logging when it starts, so the buffer handler
    # is attached here rather than at import time.
    install_handler()
    ensure_upload_dir()

    engine = get_engine()
    configure_rate_limiter(engine=engine, config=get_config())
    logger.info("DapDip API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("DapDip API shutting down")


app = FastAPI(
    title="DapDip API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, TooManyRequestsError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": {
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "retry_after": exc.retry_after,
                },
                "code": exc.code,
            },
            headers={"Retry-After": str(exc.retry_after)},
        )
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(comments_router, prefix="/api")
app.include_router(follows_router, prefix="/api")
app.include_router(messages_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(ai_router, prefix="/api")
app.include_router(reels_router, prefix="/api")
app.include_router(stories_router, prefix="/api")
app.include_router(audio_router, prefix="/api")
app.include_router(better_me_router, prefix="/api")
app.include_router(media_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Serve uploaded files as static assets
if UPLOAD_DIR.exists():
    app.mount(
        "/api/uploads",
        StaticFiles(directory=str(UPLOAD_DIR)),
        name="uploads",
    )
