"""FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ridedispatch.api.routes import get_dispatch_service, router
from ridedispatch.api.websocket import handle_driver_connection, handle_observer_connection
from ridedispatch.config import get_settings
from ridedispatch.engine.service import DispatchService
from ridedispatch.state.manager import get_state_manager
from ridedispatch.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


async def sweep_presence_periodically(service: DispatchService, interval: float) -> None:
    """Drop drivers that stopped reporting."""
    while True:
        await asyncio.sleep(interval)
        service.sweep_presence()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("application_starting")

    service = await get_dispatch_service()
    sweeper = asyncio.create_task(
        sweep_presence_periodically(service, settings.presence_sweep_interval_seconds)
    )
    logger.info("dispatch_service_ready", state_backend=settings.state_backend)

    yield

    # Shutdown
    logger.info("application_shutting_down")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper

    await service.shutdown()

    if settings.state_backend == "redis":
        state_manager = await get_state_manager()
        await state_manager.disconnect()


# Create FastAPI app
app = FastAPI(
    title="Ride Dispatch Engine",
    description="Real-time ride dispatch: presence, candidate ranking and matching",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "ride-dispatch"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": "Ride Dispatch Engine API",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(router, prefix="/api/v1", tags=["api"])


@app.websocket("/ws/drivers/{driver_id}")
async def driver_websocket_endpoint(
    websocket: WebSocket,
    driver_id: str,
    service: DispatchService = Depends(get_dispatch_service),
) -> None:
    """WebSocket endpoint for a driver's live channel."""
    await handle_driver_connection(websocket, driver_id, service)


@app.websocket("/ws/observers")
async def observer_websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for riders and admin consoles."""
    await handle_observer_connection(websocket)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ridedispatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
