"""
Claude RPG - Events API
=======================

Receives hook callbacks. Hook scripts fire and forget, so this endpoint
accepts any body, including invalid JSON, and always acknowledges.
"""

import json

import structlog
from fastapi import APIRouter, Request

from rpg_server.api.deps import Pipeline
from rpg_server.core.schemas import EventReceipt

logger = structlog.get_logger()

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=EventReceipt)
async def receive_event(request: Request, pipeline: Pipeline) -> EventReceipt:
    """
    Ingest one hook event.

    Accepts both the rich hook shape (``hook_event_name``) and the legacy
    flat shape (``type``). Anything else is logged as an Unknown event.
    """
    body = await request.body()
    try:
        payload = json.loads(body) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("event_body_not_json", size=len(body))
        payload = None

    result = await pipeline.submit_payload(payload)
    return EventReceipt(id=result.event.id, type=result.event.kind.value)
