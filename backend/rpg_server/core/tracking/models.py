"""
Claude RPG - Tracking Models
============================

Session and aggregate statistics shapes. These are also the persisted
document layout, so field aliases keep the camelCase keys written by
earlier versions of the stats file.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

STATS_SCHEMA_VERSION = 1


class TrackingModel(BaseModel):
    """Base model with camelCase aliases for the wire and the stats file."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class AgentSpawn(TrackingModel):
    """One subagent summoned inside a session."""

    agent_id: str
    agent_type: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: Optional[int] = None


class Session(TrackingModel):
    """
    One bounded unit of assistant activity.

    Opened by the first prompt for an unseen session id, closed by Stop or
    SessionEnd. ``ended_at`` and ``duration_ms`` are set together when the
    session completes.
    """

    id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: Optional[int] = None
    prompt: Optional[str] = None
    cwd: Optional[str] = None
    tool_usage: Dict[str, int] = Field(default_factory=dict)
    agent_spawns: List[AgentSpawn] = Field(default_factory=list)
    event_count: int = 0
    status: SessionStatus = SessionStatus.ACTIVE

    @property
    def tool_count(self) -> int:
        return sum(self.tool_usage.values())

    @property
    def agent_count(self) -> int:
        return len(self.agent_spawns)


class DailyActivity(TrackingModel):
    date: str  # YYYY-MM-DD
    sessions: int = 0
    tools: int = 0


class TrackingData(TrackingModel):
    """Lifetime statistics; the whole content of the stats file."""

    version: int = STATS_SCHEMA_VERSION
    total_sessions: int = 0
    total_tool_uses: int = 0
    total_agent_spawns: int = 0
    total_duration_ms: int = 0
    total_chain_triggers: int = 0
    tool_ranking: Dict[str, int] = Field(default_factory=dict)
    agent_ranking: Dict[str, int] = Field(default_factory=dict)
    chain_triggers: Dict[str, int] = Field(default_factory=dict)
    daily_activity: List[DailyActivity] = Field(default_factory=list)
    recent_sessions: List[Session] = Field(default_factory=list)

    def to_json(self) -> str:
        """Serialize in the persisted layout (camelCase, 2-space indent)."""
        return self.model_dump_json(by_alias=True, indent=2)
