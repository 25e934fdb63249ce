"""
KwikQ - Queue ticket lifecycle and metrics service

Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import Database
from .errors import (
    AllocationError,
    DependencyError,
    IntegrityViolation,
    InvalidTransition,
    NotAlertable,
    NotFound,
    QueueError,
    error_payload,
)
from .logger_config import setup_logging
from .routers import queue_router, analytics_router
from .services.notification_service import build_notifier
from .services.queue_service import QueueService
from .stores import (
    InMemoryBusinessDirectory,
    InMemorySequenceStore,
    InMemoryTicketStore,
    MongoBusinessDirectory,
    MongoSequenceStore,
    MongoTicketStore,
)

settings = get_settings()
logger = setup_logging()

ERROR_STATUS = {
    NotFound: 404,
    InvalidTransition: 409,
    NotAlertable: 409,
    IntegrityViolation: 422,
    AllocationError: 503,
    DependencyError: 503,
}


def build_queue_service() -> QueueService:
    """Queue service over the configured storage backend."""
    if settings.STORAGE_BACKEND == "memory":
        return QueueService(
            InMemoryBusinessDirectory(),
            InMemoryTicketStore(),
            InMemorySequenceStore(),
            build_notifier(),
        )
    return QueueService(
        MongoBusinessDirectory(),
        MongoTicketStore(),
        MongoSequenceStore(),
        build_notifier(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if settings.STORAGE_BACKEND != "memory":
        await Database.connect()
    if getattr(app.state, "queue_service", None) is None:
        app.state.queue_service = build_queue_service()

    yield

    # Shutdown
    await Database.disconnect()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QueueError)
async def queue_error_handler(request: Request, exc: QueueError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    if status_code >= 500:
        logger.error(
            "Queue dependency failure",
            extra={"method": request.method, "path": request.url.path, "error": exc.detail},
        )
    return JSONResponse(status_code=status_code, content=error_payload(exc))


# Include routers
app.include_router(queue_router)
app.include_router(analytics_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    if settings.STORAGE_BACKEND == "memory":
        database = "in-memory"
    else:
        database = "connected" if Database.client else "disconnected"
    return {
        "status": "healthy",
        "database": database,
        "version": settings.APP_VERSION
    }


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "kwikq.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
