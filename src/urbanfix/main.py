# src/urbanfix/main.py
"""Main entry point for the UrbanFix application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from urbanfix.api.v1 import (
    issues_router,
    ngo_router,
    system_router,
    users_router,
    votes_router,
)
from urbanfix.core.settings import settings
from urbanfix.services.geocoding import get_reverse_geocoder

# Initialize FastAPI app
app = FastAPI(
    title="UrbanFix API",
    description="Civic issue reporting, de-duplication and triage API",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(issues_router, prefix="/api/v1")
app.include_router(votes_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(ngo_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_reverse_geocoder().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "UrbanFix API",
        "version": settings.app_version,
        "description": "Civic issue reporting, de-duplication and triage API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("urbanfix.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
