"""
Claude RPG - Session Reconstructor
==================================

Rebuilds session state from the hook event stream.

Per session id: Absent -> Active -> Completed. A session opens on the first
UserPromptSubmit for an unseen id and closes on Stop, or SessionEnd while
it is still active. Out-of-order or unmatched events are no-ops, never
errors, since hook scripts are not a trustworthy source.

Sessions that never see Stop or SessionEnd are evicted, least recently
touched first, once more than ``max_open_sessions`` are open.
"""

import itertools
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

import structlog

from .events import EventKind, RpgEvent, SessionSummary
from .models import AgentSpawn, Session, SessionStatus

logger = structlog.get_logger()

MAX_OPEN_SESSIONS = 100


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_ms(started_at: str, ended_at: str) -> int:
    """
    Milliseconds between two caller-supplied timestamps.

    May be negative when the timestamps are skewed; unparseable input
    yields 0.
    """
    try:
        delta = parse_timestamp(ended_at) - parse_timestamp(started_at)
    except (TypeError, ValueError, AttributeError):
        logger.warning("unparseable_timestamps", started_at=started_at, ended_at=ended_at)
        return 0
    return int(delta.total_seconds() * 1000)


# ==========================================================================
# Effects
# ==========================================================================

class EffectKind(str, Enum):
    OPENED = "opened"
    UPDATED = "updated"
    CLOSED = "closed"
    NOOP = "noop"


@dataclass(frozen=True)
class SessionEffect:
    """What applying one event did to the open-session set"""
    kind: EffectKind
    session: Optional[Session] = None
    summary: Optional[SessionSummary] = None

    @property
    def changed(self) -> bool:
        return self.kind != EffectKind.NOOP


NOOP = SessionEffect(EffectKind.NOOP)


# ==========================================================================
# Reconstructor
# ==========================================================================

class SessionReconstructor:
    """
    Owns the open sessions, keyed by session id.

    Not thread-safe on its own; the tracking service serializes calls.
    """

    def __init__(self, max_open_sessions: int = MAX_OPEN_SESSIONS) -> None:
        self.max_open_sessions = max_open_sessions
        self._open: Dict[str, Session] = {}
        self._touched: Dict[str, int] = {}
        self._sequence = itertools.count()
        self._current_id: Optional[str] = None

        self._handlers: Dict[EventKind, Callable[[RpgEvent], SessionEffect]] = {
            EventKind.PROMPT_SUBMIT: self._prompt_submitted,
            EventKind.TOOL_POST: self._tool_used,
            EventKind.TOOL_FAILURE: self._tool_used,
            EventKind.AGENT_SPAWN_START: self._agent_spawned,
            EventKind.AGENT_SPAWN_STOP: self._agent_stopped,
            EventKind.STOP: self._close,
            EventKind.SESSION_END: self._close,
        }

    def apply(self, event: RpgEvent) -> SessionEffect:
        """Apply one event; kinds without a handler only bump the event counter."""
        handler = self._handlers.get(event.kind, self._count_event)
        return handler(event)

    # ==========================================================================
    # Queries
    # ==========================================================================

    def active_session(self) -> Optional[Session]:
        """The most recently touched open session, if any."""
        if self._current_id is None:
            return None
        return self._open.get(self._current_id)

    def active_sessions(self) -> List[Session]:
        return list(self._open.values())

    def is_active(self, session_id: str) -> bool:
        return session_id in self._open

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def _touch(self, session_id: str) -> None:
        self._touched[session_id] = next(self._sequence)
        self._current_id = session_id

    def _session_for(self, event: RpgEvent) -> Optional[Session]:
        if not event.session_id:
            return None
        return self._open.get(event.session_id)

    def _updated(self, session: Session) -> SessionEffect:
        session.event_count += 1
        self._touch(session.id)
        return SessionEffect(EffectKind.UPDATED, session)

    def _prompt_submitted(self, event: RpgEvent) -> SessionEffect:
        if not event.session_id:
            return NOOP

        existing = self._open.get(event.session_id)
        if existing is not None:
            # Re-prompt of a session that never stopped: same session
            if event.prompt is not None:
                existing.prompt = event.prompt
            return self._updated(existing)

        session = Session(
            id=event.session_id,
            started_at=event.timestamp,
            prompt=event.prompt,
            cwd=event.cwd,
            event_count=1,
        )
        self._open[session.id] = session
        self._touch(session.id)
        logger.debug("session_opened", session_id=session.id)
        self._evict_stale()
        return SessionEffect(EffectKind.OPENED, session)

    def _evict_stale(self) -> None:
        while len(self._open) > self.max_open_sessions:
            stale_id = min(self._touched, key=self._touched.__getitem__)
            self._touched.pop(stale_id)
            stale = self._open.pop(stale_id)
            logger.warning(
                "stale_session_evicted",
                session_id=stale_id,
                started_at=stale.started_at,
                event_count=stale.event_count,
            )

    def _count_event(self, event: RpgEvent) -> SessionEffect:
        session = self._session_for(event)
        if session is None:
            return NOOP
        return self._updated(session)

    def _tool_used(self, event: RpgEvent) -> SessionEffect:
        session = self._session_for(event)
        if session is None or not event.tool:
            return NOOP
        session.tool_usage[event.tool] = session.tool_usage.get(event.tool, 0) + 1
        return self._updated(session)

    def _agent_spawned(self, event: RpgEvent) -> SessionEffect:
        session = self._session_for(event)
        if session is None or not event.agent_type:
            return NOOP
        session.agent_spawns.append(AgentSpawn(
            agent_id=event.agent_id or f"agent-{int(time.time() * 1000)}",
            agent_type=event.agent_type,
            started_at=event.timestamp,
        ))
        return self._updated(session)

    def _agent_stopped(self, event: RpgEvent) -> SessionEffect:
        session = self._session_for(event)
        if session is None or not event.agent_id:
            return NOOP

        for spawn in reversed(session.agent_spawns):
            if spawn.agent_id == event.agent_id and spawn.ended_at is None:
                spawn.ended_at = event.timestamp
                spawn.duration_ms = elapsed_ms(spawn.started_at, event.timestamp)
                break

        return self._updated(session)

    def _close(self, event: RpgEvent) -> SessionEffect:
        if not event.session_id:
            return NOOP

        session = self._open.pop(event.session_id, None)
        if session is None:
            return NOOP
        self._touched.pop(session.id, None)

        session.ended_at = event.timestamp
        session.duration_ms = elapsed_ms(session.started_at, event.timestamp)
        session.status = SessionStatus.COMPLETED

        if self._current_id == session.id:
            self._current_id = max(self._touched, key=self._touched.__getitem__, default=None)

        summary = SessionSummary(
            tool_count=session.tool_count,
            agent_count=session.agent_count,
            duration_ms=session.duration_ms,
        )
        logger.info(
            "session_closed",
            session_id=session.id,
            tools=summary.tool_count,
            agents=summary.agent_count,
            duration_ms=summary.duration_ms,
        )
        return SessionEffect(EffectKind.CLOSED, session.model_copy(deep=True), summary)
