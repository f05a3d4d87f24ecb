"""
Gastronomique - Main Application

Single FastAPI application that serves:
- Public JSON API for categories, recipes, tags and articles
- Admin login / logout / session check
- Admin content management (create, update, delete) behind the admin gate
- Health check endpoint

The admin identity and the token-signing secret are read from the
environment once, at startup, and attached to ``app.state.settings``.
"""

import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from gastronomique.config import (
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    DEBUG,
    LOG_LEVEL,
    Settings,
    ensure_directories,
    load_settings,
)
from gastronomique.database import init_db
from gastronomique.routes.admin import router as admin_router
from gastronomique.routes.admin import session_router as admin_session_router
from gastronomique.routes.api import router as api_router

# ---------------------------------------------------------------------------
# Logging setup - stdout only
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    On startup:
        1. Create required directories
        2. Initialize the SQLite database

    On shutdown:
        3. Log shutdown
    """
    settings: Settings = app.state.settings

    logger.info("🚀 Starting Gastronomique v{}", APP_VERSION)
    logger.info("📋 Environment: {} | Debug: {}", APP_ENV, DEBUG)

    if settings.admin_password:
        logger.info("🔒 Admin login enabled for '{}'", settings.admin_username)
    else:
        logger.warning("🔓 No ADMIN_PASSWORD set - admin login will always fail")

    if not settings.cookie_secure:
        logger.info("🍪 Session cookie is not marked Secure (non-HTTPS deployment)")

    ensure_directories()

    try:
        init_db()
    except Exception as e:
        logger.critical("❌ Database initialization failed: {}", e)
        raise

    logger.success("✅ Application ready - listening on {}:{}", APP_HOST, APP_PORT)

    yield

    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Gastronomique",
        description=(
            "Recipe and article publishing backend with an admin "
            "content-management API."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )
    app.state.settings = settings if settings is not None else load_settings()

    # ------------------------------------------------------------------
    # Generic error handler - never leaks internals
    # ------------------------------------------------------------------
    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(
            "❌ {method} {path} - unhandled {error}",
            method=request.method,
            path=request.url.path,
            error=type(exc).__name__,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming HTTP request with timing information."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.error(
                "❌ {method} {path} - unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=type(exc).__name__,
            )
            raise

        duration = round(time.time() - start, 3)
        status = response.status_code

        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info

        log(
            "📤 {method} {path} - {status} [{duration}s]",
            method=request.method,
            path=request.url.path,
            status=status,
            duration=duration,
        )
        return response

    # ------------------------------------------------------------------
    # Register routers
    # ------------------------------------------------------------------
    app.include_router(admin_session_router)  # /api/admin/login, logout, check
    app.include_router(admin_router)  # /api/admin/*  - gated writes
    app.include_router(api_router)  # /api/*  - public reads

    return app


# ---------------------------------------------------------------------------
# Create the app instance (used by Uvicorn)
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gastronomique.main:app",
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )
