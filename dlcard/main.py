"""FastAPI application entry point for the download card service.

Application Lifecycle Diagram
=============================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ ServiceMgr  │
    │ initialize()│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ cleanup()   │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn dlcard.main:app --host 0.0.0.0 --port 8080

**Step 2 — Redeem a card**::
    curl -X POST http://localhost:8080/ -d dlkey=AB12

Key Behaviours
===============
- Items and cards are loaded lazily by the first redemption, not at startup,
  so the service comes up even while the store is unreachable.
- The download form in STATIC_DIR is served for GET requests when present.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator

from dlcard.config import get_settings
from dlcard.dependencies import _service_manager
from dlcard.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await _service_manager.initialize()
    _service_manager.logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")
    yield
    _service_manager.logger.info(f"{settings.APP_NAME} shutting down")
    await _service_manager.cleanup()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Time-limited download links gated by download cards",
    lifespan=lifespan,
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)

# Mounted last so the API routes above take precedence.
if Path(settings.STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
