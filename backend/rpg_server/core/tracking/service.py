"""
Claude RPG - Tracking Service
=============================

Single owner of session and aggregate state.

Constructed once at startup, loaded before traffic is served, shut down
on termination. Every event runs normalize -> reconstruct -> accumulate ->
schedule persist to completion before the next one starts.
"""

import dataclasses
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .aggregates import MAX_DAILY_ACTIVITY, MAX_RECENT_SESSIONS, AggregateAccumulator
from .events import RpgEvent
from .models import Session, TrackingData
from .normalizer import normalize
from .sessions import MAX_OPEN_SESSIONS, EffectKind, SessionEffect, SessionReconstructor
from .store import PERSIST_DEBOUNCE_SECONDS, StatsStore

logger = structlog.get_logger()


@dataclasses.dataclass(frozen=True)
class IngestResult:
    """A processed event and what it did to session state"""
    event: RpgEvent
    effect: SessionEffect

    @property
    def session_changed(self) -> bool:
        return self.effect.changed


class TrackingService:
    """Session tracking and lifetime statistics for the dashboard."""

    def __init__(
        self,
        stats_path: Path,
        debounce_seconds: float = PERSIST_DEBOUNCE_SECONDS,
        max_recent_sessions: int = MAX_RECENT_SESSIONS,
        max_daily_activity: int = MAX_DAILY_ACTIVITY,
        max_open_sessions: int = MAX_OPEN_SESSIONS,
    ):
        self._lock = threading.RLock()
        self.store = StatsStore(stats_path, debounce_seconds, lock=self._lock)
        self.sessions = SessionReconstructor(max_open_sessions)
        self._max_recent_sessions = max_recent_sessions
        self._max_daily_activity = max_daily_activity
        self.aggregates = self._accumulator(TrackingData())

    def _accumulator(self, data: TrackingData) -> AggregateAccumulator:
        return AggregateAccumulator(
            data,
            max_recent_sessions=self._max_recent_sessions,
            max_daily_activity=self._max_daily_activity,
        )

    @property
    def data(self) -> TrackingData:
        return self.aggregates.data

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def load(self) -> None:
        """Load persisted stats. Raises StoreInitError if storage is unusable."""
        data = self.store.load()
        with self._lock:
            self.aggregates = self._accumulator(data)

    async def shutdown(self) -> None:
        """Cancel the pending flush and write any unsaved state."""
        await self.store.shutdown()

    # ==========================================================================
    # Ingestion
    # ==========================================================================

    def ingest(self, payload: Any) -> IngestResult:
        """Normalize a raw hook payload and process it."""
        return self.process(normalize(payload))

    def handle_event(self, event: RpgEvent) -> RpgEvent:
        """
        Process one canonical event.

        Returns:
            The event, enriched with the session summary and session
            start/end flags when it opened or closed a session
        """
        return self.process(event).event

    def process(self, event: RpgEvent) -> IngestResult:
        """Apply an event to sessions and aggregates. Never raises."""
        try:
            with self._lock:
                effect = self.sessions.apply(event)
                aggregates_changed = self.aggregates.apply(event, effect)
                if effect.changed or aggregates_changed:
                    self.store.schedule_persist(self.data)
        except Exception as e:
            logger.error(
                "event_processing_failed",
                event_id=getattr(event, "id", None),
                kind=getattr(event, "kind", None),
                error=str(e),
                exc_info=e,
            )
            return IngestResult(event, SessionEffect(EffectKind.NOOP))

        if effect.kind == EffectKind.OPENED:
            event = dataclasses.replace(event, is_session_start=True)
        elif effect.kind == EffectKind.CLOSED:
            event = dataclasses.replace(event, is_session_end=True, session_summary=effect.summary)

        return IngestResult(event, effect)

    # ==========================================================================
    # Queries (copies, never live state)
    # ==========================================================================

    def get_active_session(self) -> Optional[Session]:
        with self._lock:
            session = self.sessions.active_session()
            return session.model_copy(deep=True) if session else None

    def get_active_sessions(self) -> List[Session]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self.sessions.active_sessions()]

    def get_stats(self) -> TrackingData:
        with self._lock:
            return self.data.model_copy(deep=True)

    def get_recent_sessions(self, limit: int = MAX_RECENT_SESSIONS) -> List[Session]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self.data.recent_sessions[:max(limit, 0)]]

    def get_tool_ranking(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.data.tool_ranking)

    def get_sorted_tool_ranking(self) -> List[Dict[str, Any]]:
        """Tool ranking as [{"tool", "count"}], most used first."""
        ranking = self.get_tool_ranking()
        return [
            {"tool": tool, "count": count}
            for tool, count in sorted(ranking.items(), key=lambda item: item[1], reverse=True)
        ]
