"""
Claude RPG - Event System
=========================

Canonical event types for assistant activity.
Every hook callback is normalized into one RpgEvent before it reaches
session tracking or the battle log.
"""

import json
import random
import string
import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ==========================================================================
# Event Kinds
# ==========================================================================

class EventKind(str, Enum):
    """Lifecycle event kinds, valued by their hook event names"""
    TOOL_PRE = "PreToolUse"
    TOOL_POST = "PostToolUse"
    TOOL_FAILURE = "PostToolUseFailure"
    PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"
    AGENT_SPAWN_START = "SubagentStart"
    AGENT_SPAWN_STOP = "SubagentStop"
    NOTIFICATION = "Notification"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"
    CHAIN_TRIGGER = "ChainTrigger"
    UNKNOWN = "Unknown"


KIND_ICONS: Dict[EventKind, str] = {
    EventKind.TOOL_PRE: "shield",
    EventKind.TOOL_POST: "sword",
    EventKind.TOOL_FAILURE: "miss",
    EventKind.PROMPT_SUBMIT: "lightning",
    EventKind.STOP: "skull",
    EventKind.AGENT_SPAWN_START: "summon",
    EventKind.AGENT_SPAWN_STOP: "vanish",
    EventKind.NOTIFICATION: "bell",
    EventKind.SESSION_START: "castle",
    EventKind.SESSION_END: "door",
    EventKind.CHAIN_TRIGGER: "combo",
    EventKind.UNKNOWN: "question",
}


# ==========================================================================
# Helpers
# ==========================================================================

def truncate(text: str, max_length: int) -> str:
    """Cut text to max_length, replacing the tail with '...' when it overflows."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def clean_text(text: str) -> str:
    """Replace characters UTF-8 cannot encode (lone surrogates from JSON escapes) with '?'."""
    return text.encode("utf-8", "replace").decode("utf-8")


def _clean_values(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: clean_text(value) if isinstance(value, str) else value for key, value in values.items()}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_event_id() -> str:
    """Millisecond timestamp plus a short random base36 suffix."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{int(time.time() * 1000)}-{suffix}"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


# ==========================================================================
# Core Event Structure
# ==========================================================================

@dataclass(frozen=True)
class SessionSummary:
    """Totals of a closed session, attached to the event that closed it"""
    tool_count: int
    agent_count: int
    duration_ms: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "toolCount": self.tool_count,
            "agentCount": self.agent_count,
            "durationMs": self.duration_ms,
        }


@dataclass(frozen=True)
class RpgEvent:
    """
    Canonical representation of one lifecycle occurrence.

    Instances are never mutated; enrichment after session tracking
    (summary, session start/end flags) produces a copy via
    dataclasses.replace.
    """
    # Identity
    id: str = field(default_factory=new_event_id)
    timestamp: str = field(default_factory=utc_now_iso)
    kind: EventKind = EventKind.UNKNOWN

    # Presentation
    rpg_message: str = ""
    rpg_icon: str = KIND_ICONS[EventKind.UNKNOWN]

    # Context
    tool: Optional[str] = None
    tool_input_summary: Optional[str] = None
    agent_type: Optional[str] = None
    agent_id: Optional[str] = None
    session_id: Optional[str] = None
    cwd: Optional[str] = None
    prompt: Optional[str] = None
    error: Optional[str] = None
    chain_id: Optional[str] = None
    chain_name: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    # Filled in by session tracking
    session_summary: Optional[SessionSummary] = None
    is_session_start: bool = False
    is_session_end: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape for the battle log (camelCase, absent fields dropped)"""
        data: Dict[str, Any] = {"type": self.kind.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "kind" or value is None:
                continue
            if f.name in ("is_session_start", "is_session_end") and not value:
                continue
            if f.name == "details" and not value:
                continue
            if isinstance(value, SessionSummary):
                value = value.to_dict()
            data[_camel(f.name)] = value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ==========================================================================
# Event Builder
# ==========================================================================

class EventBuilder:
    """Factory attaching the icon and battle log message for each kind"""

    @staticmethod
    def render_message(
        kind: EventKind,
        tool: Optional[str] = None,
        tool_input_summary: Optional[str] = None,
        agent_type: Optional[str] = None,
        prompt: Optional[str] = None,
        error: Optional[str] = None,
        chain_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        raw_type: Optional[str] = None,
    ) -> str:
        details = details or {}
        tool_label = tool or "Unknown"
        agent_label = agent_type or "Unknown"

        if kind == EventKind.TOOL_PRE:
            message = f"Enchant [PreToolUse] triggered! {tool or ''}".rstrip()
        elif kind == EventKind.TOOL_POST:
            message = f"[{tool_label}] skill hit!"
            if tool_input_summary:
                message += f" {tool_input_summary}"
        elif kind == EventKind.TOOL_FAILURE:
            message = f"[{tool_label}] skill missed!"
            if error:
                message += f" {truncate(error, 60)}"
        elif kind == EventKind.PROMPT_SUBMIT:
            message = "Orders received from the adventurer!"
            if prompt:
                message += f" \"{truncate(prompt, 40)}\""
        elif kind == EventKind.STOP:
            message = "Battle over! Experience gained"
        elif kind == EventKind.AGENT_SPAWN_START:
            message = f"Summon [{agent_label}] appears!"
        elif kind == EventKind.AGENT_SPAWN_STOP:
            message = f"Summon [{agent_label}] mission complete. Vanished"
        elif kind == EventKind.NOTIFICATION:
            message = "A messenger arrives"
            if details.get("message"):
                message += f": {truncate(str(details['message']), 60)}"
        elif kind == EventKind.SESSION_START:
            message = "The adventure begins"
            if details.get("source"):
                message += f" ({details['source']})"
        elif kind == EventKind.SESSION_END:
            message = "The adventurer leaves the dungeon"
            if details.get("reason"):
                message += f" ({details['reason']})"
        elif kind == EventKind.CHAIN_TRIGGER:
            message = f"Combo triggered: {chain_name or 'unknown'}"
            if details.get("trigger_count"):
                message += f" (#{details['trigger_count']})"
        else:
            message = f"Unknown event: {raw_type or 'unrecognized payload'}"

        return message

    @staticmethod
    def build(
        kind: EventKind,
        timestamp: Optional[str] = None,
        raw_type: Optional[str] = None,
        **context: Any,
    ) -> RpgEvent:
        """Create an event of the given kind with its presentation metadata"""
        # Hook payloads are untrusted; every stored string must survive JSON encoding
        context = _clean_values(context)
        if isinstance(context.get("details"), dict):
            context["details"] = _clean_values(context["details"])
        if raw_type is not None:
            raw_type = clean_text(raw_type)

        message = EventBuilder.render_message(
            kind,
            tool=context.get("tool"),
            tool_input_summary=context.get("tool_input_summary"),
            agent_type=context.get("agent_type"),
            prompt=context.get("prompt"),
            error=context.get("error"),
            chain_name=context.get("chain_name"),
            details=context.get("details"),
            raw_type=raw_type,
        )
        if context.get("details") is None:
            context.pop("details", None)
        return RpgEvent(
            timestamp=timestamp or utc_now_iso(),
            kind=kind,
            rpg_message=message,
            rpg_icon=KIND_ICONS[kind],
            **context,
        )

    @staticmethod
    def chain_trigger(
        chain_id: str,
        chain_name: Optional[str] = None,
        trigger_count: Optional[int] = None,
    ) -> RpgEvent:
        """A user-defined chain fired"""
        details = {"trigger_count": trigger_count} if trigger_count else {}
        return EventBuilder.build(
            EventKind.CHAIN_TRIGGER,
            chain_id=chain_id,
            chain_name=chain_name or chain_id,
            details=details,
        )
