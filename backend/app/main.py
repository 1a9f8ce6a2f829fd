"""
Wellness Proposal API
FastAPI backend for corporate-wellness proposals: staffing options, pricing,
line items and batched proposal edits, with async PostgreSQL storage and
Redis/Celery notifications.
"""
import logging
import time
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from app import config
from app.services.logging_config import request_id_var, setup_logging
from app.services.errors import (
    ConcurrentModification,
    InvalidTransition,
    PricingEngineError,
    ProposalNotFound,
)

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_FORMAT != "text")
logger = logging.getLogger("wellness-api")

if not config.DATABASE_URL:
    logger.warning("MISSING env var: DATABASE_URL — running in dev mode")

# Error kind → HTTP status; every other engine error is a 422
ERROR_STATUS = {
    ProposalNotFound: 404,
    InvalidTransition: 409,
    ConcurrentModification: 409,
}

UNLOGGED_PATHS = {"/health"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db import init_db, engine
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    title="Wellness Proposal API",
    version=config.APP_VERSION,
    description="Staffing, pricing and proposal editing for corporate wellness events",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)


@app.middleware("http")
async def trace_request(request: Request, call_next):
    """Bind a request id for every log line the request produces, then time it."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    token = request_id_var.set(request_id)
    start = time.perf_counter()
    try:
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)
        if request.url.path not in UNLOGGED_PATHS:
            logger.info(
                "%s %s -> %d", request.method, request.url.path, response.status_code,
                extra={
                    "http_method": request.method,
                    "http_path": request.url.path,
                    "http_status": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        return response
    finally:
        request_id_var.reset(token)


@app.exception_handler(PricingEngineError)
async def pricing_engine_error_handler(request: Request, exc: PricingEngineError):
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 422
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


from app.api.proposal_routes import router as proposal_router  # noqa: E402
from app.api.staffing_routes import router as staffing_router  # noqa: E402

app.include_router(proposal_router)
app.include_router(staffing_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": config.APP_VERSION,
        "db_configured": bool(config.DATABASE_URL),
        "notifications_enabled": config.NOTIFICATIONS_ENABLED,
    }
