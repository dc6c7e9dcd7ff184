"""
Claude RPG - Event Normalizer
=============================

Turns the two wire shapes posted by hook scripts into one RpgEvent:

- Rich shape: the hook's own JSON, discriminated by ``hook_event_name``
- Legacy shape: a flat object with a short ``type`` tag

The normalizer is pure and never raises; anything it cannot decode
becomes an Unknown event.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .events import EventBuilder, EventKind, RpgEvent, truncate, utc_now_iso

logger = structlog.get_logger()

PROMPT_MAX_LENGTH = 100


# ==========================================================================
# Wire Shapes
# ==========================================================================

class RichHookPayload(BaseModel):
    """Payload forwarded verbatim from a hook (``hook_event_name`` present)."""

    model_config = ConfigDict(extra="ignore")

    hook_event_name: str
    session_id: Optional[str] = None
    cwd: Optional[str] = None
    timestamp: Optional[str] = None
    tool_name: Optional[str] = None
    tool_input: Any = None
    prompt: Optional[str] = None
    error: Optional[str] = None
    agent_type: Optional[str] = None
    agent_id: Optional[str] = None
    message: Optional[str] = None
    title: Optional[str] = None
    notification_type: Optional[str] = None
    source: Optional[str] = None
    model: Optional[str] = None
    reason: Optional[str] = None
    chain_id: Optional[str] = None
    chain_name: Optional[str] = None


class LegacyPayload(BaseModel):
    """Flat payload from the first-generation hook script (``type`` tag present)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    tool: Optional[str] = None
    agent_type: Optional[str] = Field(None, alias="agentType")
    agent_id: Optional[str] = Field(None, alias="agentId")
    session_id: Optional[str] = Field(None, alias="sessionId")
    prompt: Optional[str] = None
    cwd: Optional[str] = None
    timestamp: Optional[str] = None


HookPayload = Union[RichHookPayload, LegacyPayload]


RICH_KINDS: Dict[str, EventKind] = {
    kind.value: kind for kind in EventKind if kind != EventKind.UNKNOWN
}

LEGACY_KINDS: Dict[str, EventKind] = {
    "pre_tool": EventKind.TOOL_PRE,
    "post_tool": EventKind.TOOL_POST,
    "stop": EventKind.STOP,
    "user_prompt": EventKind.PROMPT_SUBMIT,
    "subagent_start": EventKind.AGENT_SPAWN_START,
    "subagent_end": EventKind.AGENT_SPAWN_STOP,
}


# ==========================================================================
# Tool Input Summaries
# ==========================================================================

def shorten_path(path: str, segments: int = 3) -> str:
    """Keep only the last few path segments ("a/b/c/d.py" -> "b/c/d.py")."""
    parts = [part for part in path.replace("\\", "/").split("/") if part]
    return "/".join(parts[-segments:])


def _quoted(text: str, max_length: int) -> str:
    return f'"{truncate(text, max_length)}"'


SUMMARY_RULES: Dict[str, tuple[str, Callable[[str], str]]] = {
    "Read": ("file_path", shorten_path),
    "Write": ("file_path", shorten_path),
    "Edit": ("file_path", shorten_path),
    "MultiEdit": ("file_path", shorten_path),
    "NotebookEdit": ("notebook_path", shorten_path),
    "NotebookRead": ("notebook_path", shorten_path),
    "Bash": ("command", lambda value: truncate(value, 40)),
    "Grep": ("pattern", lambda value: _quoted(value, 30)),
    "Glob": ("pattern", lambda value: _quoted(value, 30)),
    "WebFetch": ("url", lambda value: truncate(value, 40)),
    "WebSearch": ("query", lambda value: _quoted(value, 30)),
    "Task": ("description", lambda value: truncate(value, 40)),
}


def summarize_tool_input(
    tool_name: Optional[str],
    tool_input: Any,
) -> Optional[str]:
    """
    Short human-readable hint of what a tool call touched.

    Returns None when the tool has no rule or the expected argument is
    missing.
    """
    if not tool_name or not isinstance(tool_input, Mapping):
        return None

    rule = SUMMARY_RULES.get(tool_name)
    if rule is None:
        return None

    key, render = rule
    value = tool_input.get(key)
    if not isinstance(value, str) or not value:
        return None
    return render(value)


# ==========================================================================
# Decoding
# ==========================================================================

def decode_payload(payload: Any) -> Optional[HookPayload]:
    """Pick the wire shape by its discriminator field and validate it."""
    if not isinstance(payload, Mapping):
        return None
    if "hook_event_name" in payload:
        return RichHookPayload.model_validate(payload)
    if "type" in payload:
        return LegacyPayload.model_validate(payload)
    return None


def _resolve_timestamp(raw: Optional[str], now: Optional[str]) -> str:
    if raw:
        try:
            datetime.fromisoformat(raw.replace("Z", "+00:00"))
            return raw
        except ValueError:
            pass
    return now or utc_now_iso()


def _capture_prompt(prompt: Optional[str]) -> Optional[str]:
    if prompt is None:
        return None
    return truncate(prompt, PROMPT_MAX_LENGTH)


def _from_rich(payload: RichHookPayload, now: Optional[str]) -> RpgEvent:
    kind = RICH_KINDS.get(payload.hook_event_name, EventKind.UNKNOWN)

    details: Dict[str, Any] = {}
    for key in ("message", "title", "notification_type", "source", "model", "reason"):
        value = getattr(payload, key)
        if value is not None:
            details[key] = value

    return EventBuilder.build(
        kind,
        timestamp=_resolve_timestamp(payload.timestamp, now),
        raw_type=payload.hook_event_name,
        tool=payload.tool_name,
        tool_input_summary=summarize_tool_input(payload.tool_name, payload.tool_input),
        agent_type=payload.agent_type,
        agent_id=payload.agent_id,
        session_id=payload.session_id,
        cwd=payload.cwd,
        prompt=_capture_prompt(payload.prompt),
        error=payload.error,
        chain_id=payload.chain_id,
        chain_name=payload.chain_name,
        details=details,
    )


def _from_legacy(payload: LegacyPayload, now: Optional[str]) -> RpgEvent:
    kind = LEGACY_KINDS.get(payload.type, EventKind.UNKNOWN)
    return EventBuilder.build(
        kind,
        timestamp=_resolve_timestamp(payload.timestamp, now),
        raw_type=payload.type,
        tool=payload.tool,
        agent_type=payload.agent_type,
        agent_id=payload.agent_id,
        session_id=payload.session_id,
        cwd=payload.cwd,
        prompt=_capture_prompt(payload.prompt),
    )


def _describe(payload: Any) -> str:
    if isinstance(payload, Mapping):
        raw = payload.get("hook_event_name", payload.get("type"))
        if raw is not None:
            return truncate(str(raw), 40)
    return "unrecognized payload"


def normalize(payload: Any, now: Optional[str] = None) -> RpgEvent:
    """
    Map one incoming payload onto exactly one RpgEvent.

    Args:
        payload: Decoded JSON body as posted by a hook script
        now: Ingestion timestamp used when the payload carries none

    Returns:
        The canonical event; Unknown kind when the payload is malformed
    """
    try:
        decoded = decode_payload(payload)
    except ValidationError as e:
        logger.warning("malformed_event_payload", errors=e.error_count(), raw_type=_describe(payload))
        decoded = None

    if isinstance(decoded, RichHookPayload):
        return _from_rich(decoded, now)
    if isinstance(decoded, LegacyPayload):
        return _from_legacy(decoded, now)

    return EventBuilder.build(
        EventKind.UNKNOWN,
        timestamp=now or utc_now_iso(),
        raw_type=_describe(payload),
        session_id=_loose_session_id(payload),
    )


def _loose_session_id(payload: Any) -> Optional[str]:
    """Best-effort session id from a payload that failed validation."""
    if not isinstance(payload, Mapping):
        return None
    value = payload.get("session_id", payload.get("sessionId"))
    return value if isinstance(value, str) else None
