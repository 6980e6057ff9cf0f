"""
QueueDesk - service counter queue snapshot and wait-time estimation.

Main FastAPI application entry point.
"""

import logging
import random
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import Database
from .routers import queue_router
from .services.queue_service import QueueService
from .services.stats_store import HistoricalStatStore, MongoHistoricalStatRepository
from .services.ticket_store import MongoQueueStore
from .services.time_estimation import WaitTimeEstimator

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_queue_service() -> QueueService:
    """Wire the Mongo-backed queue service with a fresh stat store."""
    rng = random.Random(settings.ESTIMATOR_SEED)
    estimator = WaitTimeEstimator(
        HistoricalStatStore(),
        rng=rng,
        min_samples=settings.MIN_HISTORY_SAMPLES,
    )
    return QueueService(MongoQueueStore(), estimator, MongoHistoricalStatRepository())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await Database.connect()

    service = create_queue_service()
    await MongoHistoricalStatRepository.load_into(service.estimator.store)
    await service.refresh()
    app.state.queue_service = service

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


# Global error handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)}
    )


# Include routers
app.include_router(queue_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    service = getattr(app.state, "queue_service", None)
    return {
        "status": "healthy",
        "database": "connected" if Database.client else "disconnected",
        "snapshot_updated_at": service.updated_at.isoformat() if service and service.updated_at else None,
        "version": settings.APP_VERSION
    }


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "queuedesk.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
