"""
Claude RPG - Test Fixtures
==========================

Shared pytest fixtures for all tests.
"""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any, Optional

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from rpg_server.api.main import create_app
from rpg_server.core.config import Settings
from rpg_server.core.tracking import TrackingService


# ==========================================================================
# Storage Fixtures
# ==========================================================================

@pytest.fixture
def stats_path(tmp_path: Path) -> Path:
    """Stats file inside a throwaway Claude home."""
    return tmp_path / ".claude" / "rpg-stats.json"


@pytest.fixture
def tracking(stats_path: Path) -> TrackingService:
    """Tracking service with a short debounce window."""
    return TrackingService(stats_path, debounce_seconds=0.05)


# ==========================================================================
# App Fixtures
# ==========================================================================

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        CLAUDE_HOME=tmp_path / ".claude",
        PERSIST_DEBOUNCE_SECONDS=0.05,
    )


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client bound to a fresh app.

    The lifespan is not run, so tracking starts empty; pending flushes
    are drained on teardown.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await app.state.tracking.shutdown()


# ==========================================================================
# Payload Helpers
# ==========================================================================

def rich_event(hook_event_name: str, session_id: Optional[str] = None, **fields: Any) -> dict:
    """Payload shaped like a hook's own JSON."""
    payload: dict = {"hook_event_name": hook_event_name, **fields}
    if session_id is not None:
        payload["session_id"] = session_id
    return payload


def prompt_submit(session_id: str, prompt: str = "Fix the login bug", **fields: Any) -> dict:
    return rich_event("UserPromptSubmit", session_id, prompt=prompt, cwd="/work/app", **fields)


def post_tool(session_id: Optional[str], tool_name: str = "Edit", **fields: Any) -> dict:
    return rich_event("PostToolUse", session_id, tool_name=tool_name, **fields)


def stop(session_id: Optional[str], **fields: Any) -> dict:
    return rich_event("Stop", session_id, **fields)
