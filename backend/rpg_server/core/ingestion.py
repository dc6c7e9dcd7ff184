"""
Claude RPG - Ingestion Pipeline
===============================

Serializes inbound events: each one is normalized, tracked and broadcast
before the next is started.
"""

import asyncio
from typing import Any

from rpg_server.core.broadcast import ConnectionManager
from rpg_server.core.tracking import EffectKind, IngestResult, RpgEvent, TrackingService


class IngestionPipeline:
    """Entry point shared by every event source (hooks, chain triggers)."""

    def __init__(self, tracking: TrackingService, connections: ConnectionManager):
        self.tracking = tracking
        self.connections = connections
        self._lock = asyncio.Lock()

    async def submit_payload(self, payload: Any) -> IngestResult:
        """Raw hook payload (either wire shape, or garbage)."""
        async with self._lock:
            result = self.tracking.ingest(payload)
            await self._publish(result)
            return result

    async def submit_event(self, event: RpgEvent) -> IngestResult:
        """Already-canonical event, e.g. from a chain trigger."""
        async with self._lock:
            result = self.tracking.process(event)
            await self._publish(result)
            return result

    async def _publish(self, result: IngestResult) -> None:
        await self.connections.broadcast_event(result.event)

        if not result.session_changed:
            return
        if result.effect.kind == EffectKind.CLOSED:
            # Show the final state of the session that just ended
            await self.connections.broadcast_session(result.effect.session)
        else:
            await self.connections.broadcast_session(self.tracking.get_active_session())
