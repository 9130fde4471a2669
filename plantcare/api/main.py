"""
FastAPI Main Application for the Plant Care service.

This module initializes the FastAPI application with all routes and middleware.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plantcare.api.endpoints.diagnosis import router as diagnosis_router
from plantcare.core.config import get_settings
from plantcare.core.logging_config import configure_logging
from plantcare.services.health_assessment import close_health_assessment_client

APP_VERSION = "0.1.0"

# Initialize settings
settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} API starting")
    yield
    await close_health_assessment_client()
    logger.info(f"{settings.app_name} API stopped")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Plant Disease Diagnosis Service",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(diagnosis_router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root():
    """Root endpoint with system information."""
    return {
        "message": "Plant Care API",
        "version": APP_VERSION,
        "status": "operational",
    }


@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint for container health checks."""
    return {"status": "healthy", "service": "plantcare-web"}


@app.get(f"{settings.api_v1_prefix}/info")
async def system_info():
    """System information endpoint."""
    return {
        "app_name": settings.app_name,
        "version": APP_VERSION,
        "debug": settings.debug,
    }


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )
