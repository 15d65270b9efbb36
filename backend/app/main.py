"""
Slice Upload API

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware import (
    ErrorHandlerMiddleware,
    ServiceError,
    service_error_handler,
    validation_error_handler,
)
from app.routes import download, slicing, upload
from app.services.cleanup_scheduler import start_cleanup_scheduler, stop_cleanup_scheduler
from app.services.service_factory import get_storage

if settings.DEBUG_LOGGING:
    logging.getLogger().setLevel(logging.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    get_storage().ensure_upload_dir()
    start_cleanup_scheduler()
    yield
    # Shutdown
    stop_cleanup_scheduler()

app = FastAPI(
    title="Slice Upload API",
    description="Chunked 3D model upload, slicing and signed artifact delivery",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS", "PUT", "DELETE"],
    allow_headers=["*"],
)

# Error handling middleware
app.add_middleware(ErrorHandlerMiddleware)
app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

# Register routers
app.include_router(upload.router, tags=["Upload"])
app.include_router(slicing.router, tags=["Slice"])
app.include_router(download.router, tags=["Download"])


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "Slice Upload API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """
    Detailed health check endpoint.

    Reports whether the slicer and download secret are configured.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "slicerConfigured": bool(settings.ORCASLICER_PATH),
        "downloadsConfigured": bool(settings.DOWNLOAD_SECRET),
    }
