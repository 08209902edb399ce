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

from config.settings import settings
from src.amm_admin.api.router import router as admin_router
from src.amm_common.database import engine
from src.amm_common.errors import AppError
from src.amm_common.middleware.request_log import RequestLogMiddleware
from src.amm_common.response import error_response
from src.amm_pool.api.router import router as pool_router
from src.amm_results.api.router import router as results_router
from src.amm_risk.api.router import router as risk_router
from src.amm_trading.api.router import router as trading_router
from src.amm_trading.application.service import get_amm_service

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: build the settlement service. Shutdown: dispose the DB engine."""
    get_amm_service()
    yield
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


app.include_router(trading_router, prefix="/api/v1")
app.include_router(pool_router, prefix="/api/v1")
app.include_router(results_router, prefix="/api/v1")
app.include_router(risk_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
