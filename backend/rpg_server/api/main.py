"""
Claude RPG - FastAPI Application
================================

Main application factory with all routers and middleware.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rpg_server.api import chains, events, stats
from rpg_server.core.broadcast import ConnectionManager, websocket_endpoint
from rpg_server.core.config import Settings, settings
from rpg_server.core.ingestion import IngestionPipeline
from rpg_server.core.schemas import ErrorResponse, HealthResponse
from rpg_server.core.tracking import TrackingService

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


# ==========================================================================
# Lifespan
# ==========================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup:
    - Load persisted stats (fails startup if storage is unusable)

    Shutdown:
    - Cancel the pending flush and write unsaved stats
    """
    app_settings: Settings = app.state.settings
    tracking: TrackingService = app.state.tracking

    logger.info("Starting Claude RPG", version=app_settings.APP_VERSION)

    tracking.load()
    logger.info("Tracking data loaded", stats_file=str(app_settings.stats_path))

    yield

    logger.info("Shutting down Claude RPG")
    await tracking.shutdown()
    logger.info("Tracking data saved")


# ==========================================================================
# App Factory
# ==========================================================================

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings override (tests); defaults to the environment

    Returns:
        Configured FastAPI application
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Claude RPG - assistant activity as a battle log",
        docs_url="/docs" if app_settings.is_development else None,
        redoc_url="/redoc" if app_settings.is_development else None,
        openapi_url="/openapi.json" if app_settings.is_development else None,
        lifespan=lifespan,
    )

    # ==========================================================================
    # State Owners
    # ==========================================================================

    tracking = TrackingService(
        app_settings.stats_path,
        debounce_seconds=app_settings.PERSIST_DEBOUNCE_SECONDS,
        max_recent_sessions=app_settings.MAX_RECENT_SESSIONS,
        max_daily_activity=app_settings.MAX_DAILY_ACTIVITY,
        max_open_sessions=app_settings.MAX_OPEN_SESSIONS,
    )
    connections = ConnectionManager()

    app.state.settings = app_settings
    app.state.tracking = tracking
    app.state.connections = connections
    app.state.pipeline = IngestionPipeline(tracking, connections)

    # ==========================================================================
    # Middleware
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        if app_settings.is_development:
            detail = str(exc)
        else:
            detail = "An unexpected error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=detail,
                code="INTERNAL_ERROR",
            ).model_dump(),
        )

    # ==========================================================================
    # Routers
    # ==========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Check application health."""
        return HealthResponse(
            status="healthy",
            version=app_settings.APP_VERSION,
            environment=app_settings.ENVIRONMENT,
            active_sessions=len(tracking.get_active_sessions()),
            connected_clients=connections.client_count,
            stats_file=str(app_settings.stats_path),
        )

    app.include_router(events.router, prefix=app_settings.API_PREFIX)
    app.include_router(chains.router, prefix=app_settings.API_PREFIX)
    app.include_router(stats.router, prefix=app_settings.API_PREFIX)

    # ==========================================================================
    # WebSocket Endpoints
    # ==========================================================================

    @app.websocket("/ws")
    async def live_updates(websocket: WebSocket):
        """Battle log and session updates."""
        await websocket_endpoint(websocket, connections, tracking)

    # ==========================================================================
    # Root Endpoint
    # ==========================================================================

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "docs": "/docs" if app_settings.is_development else "Disabled in production",
            "health": "/health",
            "api": app_settings.API_PREFIX,
            "ws": "/ws",
        }

    return app


# ==========================================================================
# Application Instance
# ==========================================================================

app = create_app()


# ==========================================================================
# Development Server
# ==========================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "rpg_server.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development and settings.DEBUG,
        log_level="info",
    )


if __name__ == "__main__":
    run()
