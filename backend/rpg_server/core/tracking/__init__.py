"""
Claude RPG - Tracking
=====================

Event ingestion, session reconstruction and lifetime statistics.
"""

from .aggregates import AggregateAccumulator
from .events import (
    EventBuilder,
    EventKind,
    RpgEvent,
    SessionSummary,
    clean_text,
    truncate,
)
from .models import (
    AgentSpawn,
    DailyActivity,
    Session,
    SessionStatus,
    TrackingData,
)
from .normalizer import normalize, summarize_tool_input
from .service import IngestResult, TrackingService
from .sessions import EffectKind, SessionEffect, SessionReconstructor
from .store import StatsStore, StoreInitError

__all__ = [
    # Events
    "EventBuilder",
    "EventKind",
    "RpgEvent",
    "SessionSummary",
    "clean_text",
    "truncate",
    # Models
    "AgentSpawn",
    "DailyActivity",
    "Session",
    "SessionStatus",
    "TrackingData",
    # Normalizer
    "normalize",
    "summarize_tool_input",
    # Sessions
    "EffectKind",
    "SessionEffect",
    "SessionReconstructor",
    # Aggregates
    "AggregateAccumulator",
    # Store
    "StatsStore",
    "StoreInitError",
    # Service
    "IngestResult",
    "TrackingService",
]
