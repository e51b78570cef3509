"""
Standalone FastAPI app wiring for Firefly Grove.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import core.config as config
from core.db import DB, init_db
from app.middleware import configure_middleware
from app.routes.branches import router as branches_router
from app.routes.health import router as health_router
from app.routes.memories import router as memories_router
from app.routes.root import router as root_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    if DB.SessionLocal is None:
        init_db()
    try:
        yield
    finally:
        if DB.engine:
            DB.engine.dispose()


def _first_error_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    config.logger.info("request_validation_error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=400,
        content={"error": _first_error_message(exc), "error_type": "validation_error"},
    )


app = FastAPI(title=config.SERVICE_NAME, redirect_slashes=False, lifespan=lifespan)
configure_middleware(app)
app.add_exception_handler(RequestValidationError, _validation_error_handler)

# Health and root endpoints
app.include_router(health_router)
app.include_router(root_router)

# Sharing API
app.include_router(memories_router)
app.include_router(branches_router)
