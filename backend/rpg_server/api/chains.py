"""
Claude RPG - Chains API
=======================

Trigger callback invoked by generated chain scripts when a chain fires.
Chain definitions themselves are managed elsewhere; here a trigger is
only an event feeding the combo counters and the battle log.
"""

from typing import Optional

from fastapi import APIRouter

from rpg_server.api.deps import Pipeline
from rpg_server.core.schemas import ChainTriggerRequest, EventReceipt
from rpg_server.core.tracking import EventBuilder

router = APIRouter(prefix="/chains", tags=["Chains"])


@router.post("/trigger/{chain_id}", response_model=EventReceipt)
async def trigger_chain(
    chain_id: str,
    pipeline: Pipeline,
    body: Optional[ChainTriggerRequest] = None,
) -> EventReceipt:
    """Record that a chain fired and announce the combo."""
    event = EventBuilder.chain_trigger(
        chain_id=chain_id,
        chain_name=body.name if body else None,
        trigger_count=body.count if body else None,
    )
    result = await pipeline.submit_event(event)
    return EventReceipt(id=result.event.id, type=result.event.kind.value)
