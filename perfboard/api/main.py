"""
perfboard.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn perfboard.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from perfboard.api.auth import router as auth_router  # noqa: E402
from perfboard.api.deps import get_config, get_engine  # noqa: E402
from perfboard.api.routes.admin import router as admin_router  # noqa: E402
from perfboard.api.routes.public import router as public_router  # noqa: E402
from perfboard.api.routes.realtime import router as realtime_router  # noqa: E402
from perfboard.database.engine import init_db, run_db  # noqa: E402
from perfboard.errors import PerfboardError  # noqa: E402

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
    """Startup/shutdown lifecycle — create tables and seed the catalogue."""
    cfg = get_config()
    engine = get_engine()
    await run_db(init_db, engine, seed=cfg.seed_achievements)
    logger.info("%s API started — engine ready (%s)", cfg.app_name, engine.url.database)
    yield
    logger.info("%s API shutting down", cfg.app_name)


app = FastAPI(
    title="Perfboard API",
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


@app.exception_handler(PerfboardError)
async def perfboard_error_handler(request: Request, exc: PerfboardError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(public_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(realtime_router)


@app.get("/api/health")
def health():
    return {"status": "ok"}
