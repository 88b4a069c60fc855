from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from inventory_sync.config import get_settings
from inventory_sync.database import engine, Base
from inventory_sync.exceptions import InventoryError
from inventory_sync.broadcast.broadcaster import get_broadcaster
from inventory_sync.api import products, realtime, health

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up application...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    # Relay broadcasts from other processes into this one
    broadcaster = get_broadcaster()
    if broadcaster.relay is not None:
        broadcaster.relay.start()
        logger.info("Redis broadcast relay started")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if broadcaster.relay is not None:
        await broadcaster.relay.stop()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Inventory backend with real-time synchronization:

    - **Product Management**: create, update, delete and adjust quantity
    - **Media Store**: product images are stored in Cloudinary
    - **Push Channel**: every change is broadcast to all connected clients over WebSocket

    ## Features

    ### Change Broadcasting
    Each successful mutation is committed first and then broadcast once on the
    `inventory-changes` topic, followed by a human-readable message on the
    `notifications` topic. Delivery is best effort: clients that are not
    connected at that moment miss the event and catch up on their next full load.

    ### Stock Adjustments
    Quantity adjustments are a single conditional UPDATE, so concurrent
    adjustments never lose a delta and stock never goes below zero.
    """,
    version=settings.APP_VERSION,
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT"
    },
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    """Render domain errors as `{"detail": ..., "type": ...}` with their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "type": exc.error_type}
    )


# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(realtime.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health",
        "websocket": "/api/v1/ws"
    }
