"""
SecureProctor Service - FastAPI application with request logging
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .proctor.api import router as proctor_router
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Session integrity engine for remotely proctored assessments",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


# ============================================================================
# Request Logging Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start = time.time()
    method = request.method
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(f"{method} {path} failed: {e}")
        raise

    # Detection pushes arrive every second; keep them out of INFO
    if path not in ["/health", "/favicon.ico"] and not path.endswith("/detections"):
        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"{method} {path} -> {response.status_code} in {duration_ms}ms")

    return response


# CORS middleware - the browser client runs on another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(proctor_router)


@app.on_event("startup")
async def startup_event():
    """Configure logging and report configuration."""
    setup_logging(
        service_name="secureproctor",
        level=settings.LOG_LEVEL,
        log_to_file=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR
    )
    logger.info(f"Session store: {settings.SESSION_STORE}")
    logger.info(f"Sampling interval: {settings.SAMPLING_INTERVAL_SECONDS}s")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "docs": "/docs" if settings.DEBUG else "Disabled in production"
    }


def run():
    """Console entry point: serve the API with uvicorn"""
    import uvicorn

    uvicorn.run("secureproctor.main:app", host="0.0.0.0", port=8000)
