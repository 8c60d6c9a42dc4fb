"""
Main FastAPI application for the GENGE ownership verification API.
Serves /verifyOwnership, health checks and metrics.
"""
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.routes import health, verify
from app.utils.metrics import router as metrics_router


logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    missing = settings.missing_required()
    if missing:
        logger.warning("config_missing_required", extra={"missing": missing})
    logger.info("app_started")
    yield


app = FastAPI(
    title="GENGE Ownership API",
    description="Verifies NFT ownership or x402 payment before granting access",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = settings.cors_origins_list or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid.uuid4().hex
    start = time.time()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_ms": round((time.time() - start) * 1000, 2),
        },
    )
    return response


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("server_error", extra={"path": request.url.path, "error": type(exc).__name__})
    return JSONResponse(status_code=500, content={"error": "Server error"})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(verify.router)
app.include_router(metrics_router)


def run() -> None:
    """Console entry point: serve the API with uvicorn on PORT."""
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
