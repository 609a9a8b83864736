"""
AgroIkemba Reservas - Inventory Reservation & Expiry Service
FastAPI Application Entry Point
"""
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from app.core import settings, engine, Base
from app.core.errors import ReservationError, InsufficientStockError
from app.api.router import api_router
from app.jobs import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")

    # Start background scheduler for reservation expiry
    if settings.SCHEDULER_ENABLED:
        try:
            start_scheduler()
        except Exception as e:
            logger.warning(f"Could not start expiry scheduler: {e}")

    yield

    # Shutdown
    if settings.SCHEDULER_ENABLED:
        stop_scheduler()
    logger.info(f"{settings.APP_NAME} shutting down")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Inventory reservations, expiry and availability for proposals",
    version="1.0.0",
    lifespan=lifespan
)

# Error taxonomy -> HTTP status
@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    if isinstance(exc, InsufficientStockError):
        logger.critical(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": str(exc), "error": exc.__class__.__name__}
    )

# Include routers
app.include_router(api_router, prefix="/api")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
