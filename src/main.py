"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src import container
from src.rb_bonus.api.router import router as bonus_router
from src.rb_chest.api.router import router as chest_router
from src.rb_common.database import engine
from src.rb_common.errors import AppError
from src.rb_common.events import RedisEventPublisher
from src.rb_common.response import error_response
from src.rb_gateway.middleware.request_log import RequestLogMiddleware
from src.rb_jobs.auto_close import run_auto_close_tick
from src.rb_jobs.auto_mint import run_auto_mint_tick
from src.rb_jobs.scheduler import JobRunner, PeriodicJob
from src.rb_ledger.api.router import router as ledger_router

logger = logging.getLogger(__name__)


def build_job_runner() -> JobRunner:
    return JobRunner([
        PeriodicJob("auto_mint", settings.AUTO_MINT_INTERVAL_SECONDS, run_auto_mint_tick),
        PeriodicJob("auto_close", settings.AUTO_CLOSE_INTERVAL_SECONDS, run_auto_close_tick),
    ])


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, connect events, start jobs. Shutdown: reverse order."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    publisher = container.event_publisher
    if isinstance(publisher, RedisEventPublisher):
        await publisher.start()
    runner = build_job_runner()
    if settings.JOBS_ENABLED:
        runner.start()
    else:
        logger.info("Scheduled jobs disabled (JOBS_ENABLED=false)")
    yield
    # Shutdown
    await runner.stop()
    if isinstance(publisher, RedisEventPublisher):
        await publisher.close()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(ledger_router, prefix="/api/v1")
app.include_router(chest_router, prefix="/api/v1")
app.include_router(bonus_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
