"""
FastAPI main application for the Spatial Layout Engine
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from dotenv import load_dotenv

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from layout_engine.api.layout_api import layout_router
from layout_engine.api.render_loop import RenderLoop
from layout_engine.api.websocket_manager import websocket_manager
from layout_engine.config.settings import get_settings
from layout_engine.core.layout_controller import LayoutController

# Load environment variables from .env file
load_dotenv()

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level, format=settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Initialize and cleanup application resources"""
    logger.info(f"Starting {settings.app_name}...")

    controller = LayoutController(
        settings=settings.get_layout_settings(),
        strategy=settings.default_strategy,
        config=settings.get_controller_config(),
    )
    render_loop = RenderLoop(controller, websocket_manager, tick_rate=settings.tick_rate)

    # Store instances in app state for access in routes
    app.state.layout_controller = controller
    app.state.render_loop = render_loop

    await render_loop.start()
    logger.info(f"{settings.app_name} initialized with {controller.active_strategy.value} layout")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await render_loop.stop()


# Create FastAPI application
app = FastAPI(
    title="Spatial Layout Engine API",
    description="3D placement of items with animated grid, sphere and cluster layouts",
    version=settings.app_version,
    lifespan=lifespan
)

# Configure CORS for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(layout_router, prefix="/api/layout", tags=["layout"])


@app.get("/")
async def root():
    """Root endpoint with system information"""
    return {
        "message": "Spatial Layout Engine API",
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    controller = getattr(app.state, "layout_controller", None)
    render_loop = getattr(app.state, "render_loop", None)
    if controller is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": "Layout controller not initialized"}
        )

    loop_healthy = render_loop is not None and render_loop.is_running
    return {
        "status": "healthy" if loop_healthy else "degraded",
        "components": {
            "layout_controller": "healthy",
            "render_loop": "healthy" if loop_healthy else "stopped",
        },
        "active_strategy": controller.active_strategy.value,
        "item_count": len(controller.items),
    }


@app.exception_handler(404)
async def not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content={"error": "Not found", "message": getattr(exc, "detail", str(exc))}
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    logger.error(f"Internal server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
