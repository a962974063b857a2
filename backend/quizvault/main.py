"""
FastAPI application entrypoint.

Lifespan:
  • On startup: create the storage directory, build the engine,
    create missing tables.
  • On shutdown: dispose the engine cleanly.

Routes:
  • {BASE_URL}/upload: definition / submission ingestion
  • /health: shallow liveness probe
  • {BASE_URL}/: static front end from PUBLIC_DIR, when present
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from quizvault.core.config import Settings, settings
from quizvault.core.database import (
    build_engine,
    build_session_factory,
    ensure_storage_dir,
    init_models,
)
from quizvault.core.security import SecurityHeadersMiddleware
from quizvault.routers.upload import router as upload_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    config: Settings = app.state.settings

    ensure_storage_dir(config.database_url)
    engine = build_engine(config.database_url, echo=config.DEBUG)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    # Startup: create tables (no-op when they already exist)
    try:
        await init_models(engine)
        logger.info("Storage ready at %s ✓", engine.url.render_as_string(hide_password=True))
    except Exception:
        logger.exception(
            "Could not initialise the database on startup. "
            "The app will start, but uploads will fail until it is available."
        )

    yield  # ← application runs here

    # Shutdown: clean up connection pool
    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
def create_app(config: Settings | None = None) -> FastAPI:
    """Build an app bound to `config` (defaults to the process settings)."""
    config = config or settings

    app = FastAPI(
        title=config.APP_NAME,
        version="0.1.0",
        description="Stores quiz definitions and the submissions made against them.",
        lifespan=lifespan,
    )
    app.state.settings = config

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Health check ────────────────────────────────────────
    @app.get(
        "/health",
        tags=["System"],
        summary="Liveness probe",
    )
    async def health_check() -> dict[str, str]:
        """Shallow health check, confirms the process is alive."""
        return {"status": "healthy"}

    # Mount routers
    app.include_router(upload_router, prefix=config.route_prefix)

    # Static files last, so they never shadow API routes
    public_dir = Path(config.PUBLIC_DIR)
    if public_dir.is_dir():
        app.mount(
            config.route_prefix or "/",
            StaticFiles(directory=public_dir, html=True),
            name="public",
        )
    else:
        logger.info("No static directory at %s, serving API only", public_dir)

    return app


app = create_app()
