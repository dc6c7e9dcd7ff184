"""
Claude RPG - Pydantic Schemas
=============================

Request and response schemas for the HTTP API.
Tracking models (sessions, stats) live in rpg_server.core.tracking.models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ==========================================================================
# Common Schemas
# ==========================================================================

class ErrorResponse(BaseSchema):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    environment: str
    active_sessions: int
    connected_clients: int
    stats_file: str


# ==========================================================================
# Ingestion Schemas
# ==========================================================================

class EventReceipt(BaseSchema):
    """Acknowledgement returned to hook scripts."""

    received: bool = True
    id: str
    type: str


class ChainTriggerRequest(BaseSchema):
    """Optional body for a chain trigger callback."""

    name: Optional[str] = Field(None, max_length=200)
    count: Optional[int] = Field(None, ge=0)


# ==========================================================================
# Stats Schemas
# ==========================================================================

class ToolRankingEntry(BaseSchema):
    """One row of the tool usage ranking."""

    tool: str
    count: int
