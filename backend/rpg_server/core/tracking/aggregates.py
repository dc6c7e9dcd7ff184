"""
Claude RPG - Aggregate Accumulator
==================================

Lifetime counters derived from events and closed sessions.
Tool and agent rankings count every event, whether or not a session is
open for it; session totals only move when a session closes.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from .events import EventKind, RpgEvent
from .models import DailyActivity, Session, TrackingData
from .sessions import EffectKind, SessionEffect

MAX_RECENT_SESSIONS = 50
MAX_DAILY_ACTIVITY = 30
UNKNOWN_CHAIN_ID = "unknown"


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class AggregateAccumulator:
    """Applies event and session effects to one TrackingData instance."""

    def __init__(
        self,
        data: TrackingData,
        max_recent_sessions: int = MAX_RECENT_SESSIONS,
        max_daily_activity: int = MAX_DAILY_ACTIVITY,
        today: Callable[[], str] = utc_today,
    ):
        self.data = data
        self.max_recent_sessions = max_recent_sessions
        self.max_daily_activity = max_daily_activity
        self._today = today

    def apply(self, event: RpgEvent, effect: SessionEffect) -> bool:
        """
        Fold one processed event into the aggregates.

        Returns:
            True when any aggregate changed
        """
        changed = False

        if event.kind in (EventKind.TOOL_POST, EventKind.TOOL_FAILURE) and event.tool:
            self.record_tool_use(event.tool)
            changed = True

        elif event.kind == EventKind.AGENT_SPAWN_START and event.agent_type:
            self.record_agent_spawn(event.agent_type)
            changed = True

        elif event.kind == EventKind.CHAIN_TRIGGER:
            self.record_chain_trigger(event.chain_id)
            changed = True

        if effect.kind == EffectKind.CLOSED and effect.session is not None:
            self.record_session_closed(effect.session)
            changed = True

        return changed

    # ==========================================================================
    # Counters
    # ==========================================================================

    def record_tool_use(self, tool_name: str) -> None:
        ranking = self.data.tool_ranking
        ranking[tool_name] = ranking.get(tool_name, 0) + 1
        self.data.total_tool_uses += 1

    def record_agent_spawn(self, agent_type: str) -> None:
        ranking = self.data.agent_ranking
        ranking[agent_type] = ranking.get(agent_type, 0) + 1
        self.data.total_agent_spawns += 1

    def record_chain_trigger(self, chain_id: Optional[str]) -> None:
        chain_id = chain_id or UNKNOWN_CHAIN_ID
        triggers = self.data.chain_triggers
        triggers[chain_id] = triggers.get(chain_id, 0) + 1
        self.data.total_chain_triggers += 1

    def record_session_closed(self, session: Session) -> None:
        self.data.total_sessions += 1
        # Skewed timestamps can yield a negative duration; the total never shrinks
        self.data.total_duration_ms += max(session.duration_ms or 0, 0)

        self.data.recent_sessions.insert(0, session)
        del self.data.recent_sessions[self.max_recent_sessions:]

        self._record_daily_activity(session.tool_count)

    # ==========================================================================
    # Daily Activity
    # ==========================================================================

    def _record_daily_activity(self, tool_count: int) -> None:
        today = self._today()
        entry = next((d for d in self.data.daily_activity if d.date == today), None)
        if entry is None:
            entry = DailyActivity(date=today)
            self.data.daily_activity.append(entry)

        entry.sessions += 1
        entry.tools += tool_count

        # Keep the most recent recorded days, not a calendar window
        if len(self.data.daily_activity) > self.max_daily_activity:
            self.data.daily_activity.sort(key=lambda d: d.date, reverse=True)
            del self.data.daily_activity[self.max_daily_activity:]
