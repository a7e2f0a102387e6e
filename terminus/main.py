"""
FastAPI application for the Terminus narrative engine
"""

import os
import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from terminus import __version__
from terminus.api.sessions import router as sessions_router
from terminus.config import settings
from terminus.utils.logger import get_logger, setup_logging

# Configure for centralized logging (disable console spam in production)
enable_console_logging = os.getenv("ENABLE_CONSOLE_LOGS", "true").lower() == "true"

setup_logging(
    level=settings.log_level,
    log_file=settings.log_file,
    enable_colors=enable_console_logging,
    include_timestamp=True,
    enable_console_logging=enable_console_logging,
)

logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Terminus Narrative Engine",
    description="Stateful branching dialogue with trust, patterns and flags",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

logger.info("FastAPI application initialized")
logger.info(f"Log level: {settings.log_level}")

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next: Callable) -> Response:
    """Log all HTTP requests and responses"""

    # Generate request ID for correlation
    request_id = str(uuid.uuid4())[:8]
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"

    logger.info(
        f"[API] Request started: {request.method} {request.url.path}",
        extra={
            "component": "API",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip,
        },
    )

    # Store request_id in request state for use in endpoints
    request.state.request_id = request_id

    try:
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            f"[API] Request completed: {request.method} {request.url.path} -> {response.status_code} ({duration_ms:.2f}ms)",
            extra={
                "component": "API",
                "request_id": request_id,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response

    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"[API] Request failed: {request.method} {request.url.path} -> ERROR ({duration_ms:.2f}ms): {str(e)}",
            extra={
                "component": "API",
                "request_id": request_id,
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise


# Include routers
app.include_router(sessions_router, prefix="/sessions", tags=["sessions"])


@app.get("/")
async def root():
    """Root endpoint"""
    logger.debug("Root endpoint called")
    return {
        "message": "Terminus Narrative Engine",
        "version": __version__,
        "status": "running",
        "log_level": settings.log_level,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    logger.debug("Health check endpoint called")
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run(
        "terminus.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.log_level == "VERBOSE" else settings.log_level.lower(),
    )
