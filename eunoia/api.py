# -*- coding: utf-8 -*-
"""
Eunoia learning nuggets API

Shared nugget pool with per-user progress and rolling refill generation.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .app_db import init_app_db
from .auth.security import get_current_user_from_request
from .config import settings
from .errors import GenerationFailed, NoContentAvailable, NotAuthenticated, NuggetServiceError
from .nuggets.api import admin_router as nuggets_admin_router
from .nuggets.api import router as nuggets_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Eunoia learning nuggets",
    description="Rolling refill distribution of shared learning nuggets",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup_init_db() -> None:
    init_app_db(settings.app_db_path)


# Ensure the app DB exists even when lifespan events are not triggered (e.g. some test clients).
init_app_db(settings.app_db_path)


_AUTH_EXEMPT_PREFIXES = (
    "/api/docs",
    "/api/redoc",
    "/api/openapi.json",
)


@app.middleware("http")
async def _auth_gate(request: Request, call_next):
    path = request.url.path
    if path.startswith("/api") and path != "/api/health" and not any(path.startswith(p) for p in _AUTH_EXEMPT_PREFIXES):
        try:
            request.state.user = get_current_user_from_request(request)
        except NotAuthenticated as exc:
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
    return await call_next(request)


@app.exception_handler(NoContentAvailable)
async def _no_content_handler(request: Request, exc: NoContentAvailable) -> JSONResponse:
    # Empty pool is not a failure; clients render a neutral empty state.
    return JSONResponse(status_code=exc.status_code, content={"status": "empty", "detail": exc.message})


@app.exception_handler(GenerationFailed)
async def _generation_failed_handler(request: Request, exc: GenerationFailed) -> JSONResponse:
    logger.error("Generation failed: %s (cause: %r)", exc.message, exc.cause)
    return JSONResponse(status_code=exc.status_code, content={"detail": f"Nugget generation failed: {exc.message}"})


@app.exception_handler(NuggetServiceError)
async def _service_error_handler(request: Request, exc: NuggetServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.__class__.__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/api/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(nuggets_router)
app.include_router(nuggets_admin_router)


def run() -> None:
    """Console entry point (used by pyproject [project.scripts])."""
    import uvicorn

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    host = os.environ.get("EUNOIA_HOST") or os.environ.get("HOST") or "127.0.0.1"
    port_raw = os.environ.get("EUNOIA_PORT") or os.environ.get("PORT") or "8000"
    try:
        port = int(port_raw)
    except ValueError:
        port = 8000

    uvicorn.run("eunoia.api:app", host=host, port=port, reload=False)
