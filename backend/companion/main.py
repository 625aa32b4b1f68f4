"""
Focus Companion - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .api import memories_router, sessions_router, users_router
from .config import settings
from .core.logging_config import setup_logging
from .core.server_context import build_server_context
from .middleware import RequestLoggingMiddleware
from .websocket import SessionProtocolHandler, WebSocketTransport

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    # Tests may install their own context before startup
    if getattr(app.state, "context", None) is None:
        app.state.context = build_server_context(settings)
    app.state.protocol = SessionProtocolHandler(app.state.context)

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    yield
    # Shutdown
    await app.state.protocol.drain()
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Body-doubling focus companion with streaming chat",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(users_router)
app.include_router(sessions_router)
app.include_router(memories_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    context = getattr(app.state, "context", None)
    return {
        "status": "healthy",
        "generation": bool(context and context.gateway.available),
        "version": settings.app_version,
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """Real-time chat for a focus session. Authenticate with ``?token=``."""
    await websocket.accept()
    await app.state.protocol.serve(WebSocketTransport(websocket), token)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "companion.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
