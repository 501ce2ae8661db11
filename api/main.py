"""
FastAPI main application for RoomFrame
"""
import logging
import os
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

# Add api directory to path for imports (works when started as a script)
api_dir = os.path.dirname(os.path.abspath(__file__))
if api_dir not in sys.path:
    sys.path.insert(0, api_dir)

from core.config import settings  # noqa: E402
from core.exceptions import RoomFrameError  # noqa: E402
from core.logging import setup_logging  # noqa: E402
from middleware.logging_middleware import RequestLoggingMiddleware  # noqa: E402
from routers import crop, preprocess  # noqa: E402
from services.object_locator import GeminiObjectLocator  # noqa: E402

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting {settings.app_name}...")

    google_key = settings.google_ai_api_key
    if google_key:
        key_preview = f"{google_key[:7]}...{google_key[-4:]}" if len(google_key) > 11 else "***"
        logger.info(f"✅ GOOGLE_AI_API_KEY is set: {key_preview}")
    else:
        logger.error("❌ GOOGLE_AI_API_KEY is NOT set - smart crop and smart zoom will not work!")

    app.state.object_locator = GeminiObjectLocator.from_settings(settings)
    logger.info("Application started")

    yield

    logger.info(f"Shutting down {settings.app_name}...")


app = FastAPI(
    title=settings.app_name,
    description="Smart crop and image preprocessing for AI room redesign",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(RoomFrameError)
async def roomframe_error_handler(request: Request, exc: RoomFrameError):
    """Typed pipeline errors that escape a route keep their status code."""
    logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers"""
    locator = getattr(app.state, "object_locator", None)
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.version,
        "object_locator": "configured" if locator is not None and locator.configured else "unavailable",
    }


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "docs": "/docs" if settings.environment == "development" else None,
        "endpoints": {
            "smart_crop": "/api/crop/smart-crop",
            "camera_framing": "/api/preprocess/camera-framing",
            "smart_zoom": "/api/preprocess/smart-zoom",
            "outpaint_canvas": "/api/preprocess/outpaint-canvas",
        },
    }


app.include_router(crop.router, prefix="/api")
app.include_router(preprocess.router, prefix="/api")

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_config=None,  # Use our custom logging
        access_log=False,  # Handled by RequestLoggingMiddleware
    )
