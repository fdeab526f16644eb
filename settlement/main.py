"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settlement.config import settings
from settlement.database import create_db_and_tables
from settlement.errors import ServiceError
from settlement.utils.logging import setup_logging
from settlement.api import admin, risk, system, trades

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()

    if settings.sweep_enabled:
        from settlement.engine.scheduler import start_scheduler
        start_scheduler()

    yield

    if settings.sweep_enabled:
        from settlement.engine.scheduler import stop_scheduler
        stop_scheduler()


app = FastAPI(
    title="Trade Settlement Service",
    description="Closes leveraged trades, settles realized P&L into user balances",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status,
        content={"ok": False, "code": exc.code, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"ok": False, "code": "validation_error", "message": message},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path}: unhandled {exc!r}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "code": "internal_error", "message": "Internal server error"},
    )


# Mount routers
app.include_router(risk.router)
app.include_router(trades.router)
app.include_router(admin.router)
app.include_router(system.router)
