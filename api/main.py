"""
Buyer Leads API - Main Application.

FastAPI application with CORS enabled for frontend communication.
Domain errors are mapped to HTTP responses here so routers can let them propagate.
"""

import logging
import math
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.models import ErrorResponse, FieldErrorResponse
from domain.errors import (
    BatchLimitExceeded,
    ConcurrencyConflict,
    NotFound,
    RateLimitExceeded,
    StorageError,
    ValidationError,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Buyer Leads API",
    description="REST API for capturing, editing and importing real estate buyer leads",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins once the frontend domain is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, detail: str, **kwargs) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, status_code=status_code, **kwargs)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(ValidationError)
def handle_validation_error(request: Request, exc: ValidationError):
    return _error_response(
        400,
        "validation_error",
        "Validation failed",
        errors=[FieldErrorResponse(**e.to_dict()) for e in exc.errors],
    )


@app.exception_handler(ConcurrencyConflict)
def handle_concurrency_conflict(request: Request, exc: ConcurrencyConflict):
    return _error_response(409, "conflict", "Record changed, please refresh")


@app.exception_handler(NotFound)
def handle_not_found(request: Request, exc: NotFound):
    return _error_response(404, "not_found", str(exc))


@app.exception_handler(BatchLimitExceeded)
def handle_batch_limit(request: Request, exc: BatchLimitExceeded):
    return _error_response(400, "batch_limit_exceeded", str(exc))


@app.exception_handler(RateLimitExceeded)
def handle_rate_limit(request: Request, exc: RateLimitExceeded):
    response = _error_response(429, "rate_limited", "Too many requests, please try again later")
    response.headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after_seconds)))
    return response


@app.exception_handler(StorageError)
def handle_storage_error(request: Request, exc: StorageError):
    logger.error("Storage failure", extra={"path": request.url.path, "error": str(exc)})
    return _error_response(500, "storage_error", "Failed to save changes")


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "buyer-leads-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Buyer Leads API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import buyers

app.include_router(buyers.router, prefix="/api/v1", tags=["Buyers"])
