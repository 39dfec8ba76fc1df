"""
Flux Credits - FastAPI Backend
Credit ledger, generation admission and payment webhooks.
"""

import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    generate,
    webhooks,
    billing,
)
from services.reconciliation import run_unbilled_job_sweep

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def _periodic_unbilled_job_sweep() -> None:
    interval_minutes = max(int(settings.RECONCILE_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            found = await run_unbilled_job_sweep()
            if found:
                print(f"⚠️ Reconciliation sweep: {found} unbilled flux jobs need review")
        except Exception as exc:
            print(f"⚠️ Reconciliation sweep tick failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Flux Credits API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    sweep_task = None
    if int(settings.RECONCILE_INTERVAL_MINUTES) > 0:
        sweep_task = asyncio.create_task(_periodic_unbilled_job_sweep())
        print(
            "📅 Unbilled job sweep enabled "
            f"(every {int(settings.RECONCILE_INTERVAL_MINUTES)} min)."
        )
    yield
    # Shutdown
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Flux Credits API",
    description="Credit ledger and order reconciliation for paid image generation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(generate.router, prefix="/generate", tags=["Generate"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(billing.router, prefix="/billing", tags=["Billing"])


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Return HTTP errors in the same ``{"error": ...}`` shape as domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Flux Credits API",
        "version": "0.1.0",
        "status": "running"
    }
