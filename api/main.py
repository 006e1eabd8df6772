"""
FastAPI API Service Entry Point
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.routes import chat, webhook
from shared.circuit_breaker import get_breaker_status
from shared.config import get_settings
from shared.logging_config import configure_logging
from shared.redis_client import close_redis_client, ping_redis
from shared.tenant_config import TenantNotFoundError

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="AltraFlow Conversation API",
    version="1.0.0",
)

settings = get_settings()
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(webhook.router)


@app.on_event("shutdown")
async def shutdown_redis() -> None:
    """Close the Redis pool when the Redis session backend is active."""
    if get_settings().SESSION_BACKEND == "redis":
        await close_redis_client()


@app.exception_handler(TenantNotFoundError)
async def tenant_not_found_handler(request: Request, exc: TenantNotFoundError) -> JSONResponse:
    """Unknown tenant: 404 with a stable error code."""
    logger.warning(
        f"Tenant not found | tenant_id={exc.tenant_id} | path={request.url.path}",
        extra={"tenant_id": exc.tenant_id, "request_path": request.url.path},
    )
    return JSONResponse(
        status_code=404,
        content={"error": "Tenant não encontrado", "code": "TENANT_NOT_FOUND"},
    )


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": exc.errors()},
    )


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Checks Redis connectivity (PING) when the Redis session backend is active
    and reports the circuit breaker states.

    Returns:
        200 OK if all systems healthy
        503 Service Unavailable if degraded
    """
    current = get_settings()
    health_status = {
        "status": "healthy",
        "session_backend": current.SESSION_BACKEND,
        "redis": "not_used",
        "circuit_breakers": get_breaker_status(),
    }
    status_code = 200

    if current.SESSION_BACKEND == "redis":
        if await ping_redis():
            health_status["redis"] = "connected"
        else:
            health_status["redis"] = "disconnected"
            health_status["status"] = "degraded"
            status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "AltraFlow Conversation API - Use /health for health checks"}
