"""
Detection Archive - Main FastAPI Application

Archives camera detection images per motion event:
- Watches detection directories for new images
- Groups images, clips and annotations into motion events
- Archives or purges each event once its retention window passes
"""

import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
import sys

from app.utils.config import get_settings, load_triggers
from app.api import health, admin
from domains.archive.manager import ArchiveManager
from domains.archive.watcher import DetectionEventHandler, DetectionWatcher


settings = get_settings()

# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=settings.log_level.upper()
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")

    triggers = load_triggers(settings.triggers_file)
    logger.info(f"Loaded {len(triggers)} triggers from {settings.triggers_file}")

    manager = ArchiveManager(settings)
    await manager.initialize()

    handler = DetectionEventHandler(
        manager,
        triggers,
        asyncio.get_running_loop(),
        settings.get_image_extensions(),
    )
    watcher = DetectionWatcher(handler, settings.get_watch_dirs())
    watcher.start_watching()

    app.state.archive_manager = manager
    app.state.detection_watcher = watcher
    logger.success("Archiver started")

    yield

    # Cleanup
    logger.info("Shutting down application...")
    watcher.stop_watching()
    await manager.shutdown()
    logger.success("Application shut down complete")


# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Motion event archiving for detection camera images",
    lifespan=lifespan
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.log_level == "DEBUG" else "An error occurred"
        }
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Detection Archive",
        "version": settings.api_version,
        "status": "operational",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )
