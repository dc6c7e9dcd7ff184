"""
Claude RPG - Stats API
======================

Read-only views over tracking state. Every response is a copy.
"""

from typing import List, Optional

from fastapi import APIRouter

from rpg_server.api.deps import Tracking
from rpg_server.core.schemas import ToolRankingEntry
from rpg_server.core.tracking import Session, TrackingData
from rpg_server.core.tracking.aggregates import MAX_RECENT_SESSIONS

router = APIRouter(prefix="/stats", tags=["Stats"])


def parse_limit(raw: Optional[str], default: int = MAX_RECENT_SESSIONS) -> int:
    """Lenient limit parsing; anything unusable falls back to the default."""
    try:
        limit = int(raw) if raw is not None else default
    except ValueError:
        return default
    return limit if limit > 0 else default


@router.get("", response_model=TrackingData)
async def get_stats(tracking: Tracking) -> TrackingData:
    """Lifetime statistics."""
    return tracking.get_stats()


@router.get("/session", response_model=Optional[Session])
async def get_active_session(tracking: Tracking) -> Optional[Session]:
    """Session the dashboard is following, or null."""
    return tracking.get_active_session()


@router.get("/sessions", response_model=List[Session])
async def get_recent_sessions(tracking: Tracking, limit: Optional[str] = None) -> List[Session]:
    """Completed sessions, newest first."""
    return tracking.get_recent_sessions(parse_limit(limit))


@router.get("/sessions/active", response_model=List[Session])
async def get_active_sessions(tracking: Tracking) -> List[Session]:
    """All sessions that have not stopped yet."""
    return tracking.get_active_sessions()


@router.get("/ranking/tools", response_model=List[ToolRankingEntry])
async def get_tool_ranking(tracking: Tracking) -> List[ToolRankingEntry]:
    """Tool usage ranking, most used first."""
    return [ToolRankingEntry(**row) for row in tracking.get_sorted_tool_ranking()]
