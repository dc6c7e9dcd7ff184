"""
Claude RPG - Stats Store
========================

Persists TrackingData as one JSON document.

Writes are debounced: the first mutation arms a timer, later mutations
inside the window ride along, and the timer writes whatever state is live
when it fires. Writes go to a temp file that is atomically renamed over
the previous document. Snapshots are numbered and a write never replaces
a newer snapshot already on disk.
"""

import asyncio
import os
import tempfile
import threading
from pathlib import Path
from typing import ContextManager, Optional, Tuple

import structlog
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from .models import TrackingData

logger = structlog.get_logger()

PERSIST_DEBOUNCE_SECONDS = 5.0


class StoreInitError(RuntimeError):
    """The stats directory cannot be created; the server cannot start."""


class StatsStore:
    """
    Owner of the stats file and its single pending flush task.

    At most one flush task is pending at a time.
    """

    def __init__(
        self,
        path: Path,
        debounce_seconds: float = PERSIST_DEBOUNCE_SECONDS,
        lock: Optional[ContextManager] = None,
    ):
        self.path = Path(path)
        self.debounce_seconds = debounce_seconds
        self._data: Optional[TrackingData] = None
        self._dirty = False
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None
        # Shared with the state owner so snapshots never see a half-applied event
        self._lock = lock or threading.RLock()
        self._write_lock = threading.Lock()
        self._generation = 0
        self._written_generation = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ==========================================================================
    # Loading
    # ==========================================================================

    def load(self) -> TrackingData:
        """
        Read the stats document, or start empty when it is absent or corrupt.

        Raises:
            StoreInitError: the parent directory cannot be created
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreInitError(f"Cannot create stats directory {self.path.parent}: {e}") from e

        if not self.path.exists():
            logger.info("stats_file_missing_starting_fresh", path=str(self.path))
            return TrackingData()

        try:
            data = TrackingData.model_validate_json(self.path.read_bytes())
        except (OSError, ValueError, ValidationError) as e:
            logger.error("stats_file_load_failed", path=str(self.path), error=str(e))
            return TrackingData()

        logger.info(
            "stats_loaded",
            path=str(self.path),
            sessions=data.total_sessions,
            tool_uses=data.total_tool_uses,
        )
        return data

    # ==========================================================================
    # Scheduling
    # ==========================================================================

    def schedule_persist(self, data: TrackingData) -> None:
        """
        Mark state dirty and arm the flush timer if none is pending.

        ``data`` is held by reference and serialized when the timer fires.
        Without a running event loop only the dirty flag is set; the
        shutdown flush writes it.
        """
        self._data = data
        self._dirty = True

        if self.pending:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        self._timer = loop.create_task(self._flush_later())

    async def _flush_later(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self._timer = None
        if self._dirty:
            await self.flush()

    # ==========================================================================
    # Writing
    # ==========================================================================

    def _snapshot(self) -> Optional[Tuple[int, str]]:
        """
        Serialize the live state and number it.

        Returns None when there is nothing to write or the state cannot be
        serialized; the store then stays dirty.
        """
        with self._lock:
            if self._data is None:
                return None
            try:
                payload = self._data.to_json()
            except (PydanticSerializationError, ValueError) as e:
                logger.error("stats_serialize_failed", path=str(self.path), error=str(e))
                return None
            self._dirty = False
            self._generation += 1
            return self._generation, payload

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _write_or_log(self, generation: int, payload: str) -> bool:
        with self._write_lock:
            # A newer snapshot already reached disk
            if generation <= self._written_generation:
                logger.debug("stats_write_superseded", path=str(self.path), generation=generation)
                return True

            try:
                self._write_atomic(payload)
            except OSError as e:
                # Keep serving from memory; the next flush retries
                self._dirty = True
                logger.error("stats_persist_failed", path=str(self.path), error=str(e))
                return False

            self._written_generation = generation
        logger.debug("stats_persisted", path=str(self.path), generation=generation)
        return True

    async def flush(self) -> bool:
        """Snapshot on the loop, write in a worker thread. Never raises on I/O or encoding errors."""
        snapshot = self._snapshot()
        if snapshot is None:
            return False

        self._inflight = asyncio.ensure_future(asyncio.to_thread(self._write_or_log, *snapshot))
        # shutdown() awaits the write even when the timer task is cancelled
        return await asyncio.shield(self._inflight)

    def flush_now(self) -> bool:
        """Synchronous flush used on shutdown."""
        snapshot = self._snapshot()
        if snapshot is None:
            return False
        return self._write_or_log(*snapshot)

    async def shutdown(self) -> None:
        """
        Cancel the pending timer, let an in-flight write land, then write
        once more if anything is unsaved.
        """
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

        if self._inflight is not None and not self._inflight.done():
            await self._inflight
        self._inflight = None

        if self._dirty:
            self.flush_now()
        logger.info("stats_store_shutdown", path=str(self.path))
