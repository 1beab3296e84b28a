"""FastAPI application bootstrap and router wiring."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bulk_jobs.api.routers import bulk_actions, health, jobs
from bulk_jobs.core.config import get_settings
from bulk_jobs.db.session import init_db

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name, version="0.1.0")

    cors_origins = settings.cors_origins
    logger.info(f"[CORS] Parsed allowed origins: {cors_origins}")

    # Allow origins from environment variable CORS_ORIGINS (comma-separated)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def create_tables() -> None:
        init_db()
        logger.info("Database tables ready")

    app.include_router(health.router)
    # Admin routes first so /api/admin/bulk is never read as an entity named "admin".
    app.include_router(jobs.router, prefix="/api/admin/bulk", tags=["bulk-jobs"])
    app.include_router(bulk_actions.router, prefix="/api", tags=["bulk-actions"])

    return app


app = create_app()
