"""Cyber Lab Custody Core — FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from sqlalchemy import text

from cyberlab import __version__
from cyberlab.api.routes import (
    activity_router,
    approvals_router,
    cases_router,
    custody_router,
    exhibits_router,
)
from cyberlab.core.config import settings
from cyberlab.core.database import engine
from cyberlab.core.error_handlers import register_error_handlers
from cyberlab.core.logging import RequestContextMiddleware, init_logging
from cyberlab.services import blob_store

logger = logging.getLogger(__name__)

_ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _run_migrations() -> None:
    """Apply pending Alembic migrations on startup."""
    from alembic import command
    from alembic.config import Config as AlembicConfig

    cfg = AlembicConfig(str(_ALEMBIC_INI))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")
    logger.info("Alembic migrations applied.")


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Startup / shutdown lifecycle hook."""
    init_logging()
    if settings.run_migrations_on_startup:
        _run_migrations()
    # Blob store is only needed for document previews and report archiving
    try:
        blob_store.ensure_bucket()
    except Exception as exc:
        logger.warning("Blob store bucket check failed (will retry on first use): %s", exc)
    yield


app = FastAPI(title="Cyber Lab Custody Core", version=__version__, lifespan=lifespan)

app.add_middleware(RequestContextMiddleware)
register_error_handlers(app)

# ── Routers ──────────────────────────────────────────────────────────
app.include_router(cases_router)
app.include_router(exhibits_router)
app.include_router(custody_router)
app.include_router(approvals_router)
app.include_router(activity_router)


@app.get("/health")
def health():
    """Health check with service status details."""
    result = {
        "status": "healthy",
        "version": __version__,
        "database": "disconnected",
        "blob_store": "disconnected",
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        result["database"] = "connected"
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        result["status"] = "degraded"

    try:
        blob_store.get_s3_client().head_bucket(Bucket=settings.s3_bucket)
        result["blob_store"] = "connected"
    except Exception as exc:
        logger.warning("Blob store health check failed: %s", exc)
        result["status"] = "degraded"

    return result
