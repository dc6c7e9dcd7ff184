"""
Claude RPG - API Dependencies
=============================

Shared dependencies for FastAPI endpoints. State owners are built once in
the app factory and read from app.state.
"""

from typing import Annotated

from fastapi import Depends, Request

from rpg_server.core.broadcast import ConnectionManager
from rpg_server.core.ingestion import IngestionPipeline
from rpg_server.core.tracking import TrackingService


def get_tracking(request: Request) -> TrackingService:
    return request.app.state.tracking


def get_connections(request: Request) -> ConnectionManager:
    return request.app.state.connections


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

Tracking = Annotated[TrackingService, Depends(get_tracking)]
Connections = Annotated[ConnectionManager, Depends(get_connections)]
Pipeline = Annotated[IngestionPipeline, Depends(get_pipeline)]
