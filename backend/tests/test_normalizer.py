"""
Claude RPG - Event Normalizer Tests
===================================

Both wire shapes collapse into one RpgEvent; nothing makes the
normalizer raise.
"""

import json

import pytest

from rpg_server.core.tracking import EventKind, normalize, summarize_tool_input, truncate
from rpg_server.core.tracking.normalizer import shorten_path


# ==========================================================================
# Truncation & Summaries
# ==========================================================================

class TestTruncate:
    """Tests for the shared truncation rule."""

    def test_short_text_unchanged(self):
        assert truncate("abcdefghij", 10) == "abcdefghij"

    def test_long_text_cut_with_ellipsis(self):
        result = truncate("abcdefghijk", 10)
        assert result == "abcdefg..."
        assert len(result) == 10

    def test_empty_text(self):
        assert truncate("", 5) == ""


class TestToolInputSummary:
    """Tests for tool-specific input summaries."""

    def test_file_path_keeps_last_three_segments(self):
        summary = summarize_tool_input("Edit", {"file_path": "/home/me/project/src/app.tsx"})
        assert summary == "project/src/app.tsx"

    def test_short_path_kept_whole(self):
        assert shorten_path("src/app.tsx") == "src/app.tsx"

    def test_windows_path(self):
        assert shorten_path("C:\\Users\\me\\repo\\main.py") == "me/repo/main.py"

    def test_bash_command_truncated_to_40(self):
        command = "pytest " + "x" * 60
        summary = summarize_tool_input("Bash", {"command": command})
        assert summary == command[:37] + "..."
        assert len(summary) == 40

    def test_grep_pattern_quoted(self):
        assert summarize_tool_input("Grep", {"pattern": "TODO"}) == '"TODO"'

    def test_long_glob_pattern_truncated_inside_quotes(self):
        pattern = "**/" + "a" * 40
        summary = summarize_tool_input("Glob", {"pattern": pattern})
        assert summary == '"' + pattern[:27] + '..."'

    def test_unknown_tool_has_no_summary(self):
        assert summarize_tool_input("TodoWrite", {"todos": []}) is None

    def test_missing_argument_has_no_summary(self):
        assert summarize_tool_input("Read", {"offset": 10}) is None

    def test_non_mapping_input_has_no_summary(self):
        assert summarize_tool_input("Read", ["not", "a", "dict"]) is None


# ==========================================================================
# Legacy Shape
# ==========================================================================

class TestLegacyShape:
    """Tests for the flat legacy payload."""

    @pytest.mark.parametrize(
        "tag,kind",
        [
            ("pre_tool", EventKind.TOOL_PRE),
            ("post_tool", EventKind.TOOL_POST),
            ("stop", EventKind.STOP),
            ("user_prompt", EventKind.PROMPT_SUBMIT),
            ("subagent_start", EventKind.AGENT_SPAWN_START),
            ("subagent_end", EventKind.AGENT_SPAWN_STOP),
        ],
    )
    def test_tags_map_to_kinds(self, tag, kind):
        assert normalize({"type": tag}).kind == kind

    def test_post_tool_fields(self):
        event = normalize({"type": "post_tool", "tool": "Bash"})
        assert event.tool == "Bash"
        assert event.rpg_icon == "sword"
        assert "[Bash]" in event.rpg_message

    def test_agent_fields_use_camel_case(self):
        event = normalize({"type": "subagent_start", "agentType": "reviewer", "agentId": "a1"})
        assert event.agent_type == "reviewer"
        assert event.agent_id == "a1"
        assert "reviewer" in event.rpg_message

    def test_unknown_tag_embedded_in_message(self):
        event = normalize({"type": "mystery_tag"})
        assert event.kind == EventKind.UNKNOWN
        assert "mystery_tag" in event.rpg_message
        assert event.rpg_icon == "question"


# ==========================================================================
# Rich Shape
# ==========================================================================

class TestRichShape:
    """Tests for the hook's own payload shape."""

    def test_post_tool_use(self):
        event = normalize({
            "hook_event_name": "PostToolUse",
            "session_id": "S1",
            "cwd": "/work",
            "tool_name": "Read",
            "tool_input": {"file_path": "/work/a/b/c/d.py"},
        })
        assert event.kind == EventKind.TOOL_POST
        assert event.session_id == "S1"
        assert event.tool == "Read"
        assert event.tool_input_summary == "b/c/d.py"

    def test_failure_keeps_error(self):
        event = normalize({
            "hook_event_name": "PostToolUseFailure",
            "tool_name": "Bash",
            "error": "exit code 1",
        })
        assert event.kind == EventKind.TOOL_FAILURE
        assert event.error == "exit code 1"

    def test_prompt_truncated_to_100(self):
        event = normalize({"hook_event_name": "UserPromptSubmit", "prompt": "p" * 150})
        assert len(event.prompt) == 100
        assert event.prompt.endswith("...")

    def test_kind_specific_fields_go_to_details(self):
        event = normalize({"hook_event_name": "SessionEnd", "reason": "logout"})
        assert event.kind == EventKind.SESSION_END
        assert event.details == {"reason": "logout"}
        assert "logout" in event.rpg_message

    def test_unknown_hook_name(self):
        event = normalize({"hook_event_name": "PreCompact", "session_id": "S1"})
        assert event.kind == EventKind.UNKNOWN
        assert event.session_id == "S1"
        assert "PreCompact" in event.rpg_message

    def test_valid_timestamp_kept(self):
        event = normalize({"hook_event_name": "Stop", "timestamp": "2026-02-10T12:00:00+00:00"})
        assert event.timestamp == "2026-02-10T12:00:00+00:00"

    def test_invalid_timestamp_replaced(self):
        event = normalize(
            {"hook_event_name": "Stop", "timestamp": "yesterday"},
            now="2026-02-10T12:00:00+00:00",
        )
        assert event.timestamp == "2026-02-10T12:00:00+00:00"


# ==========================================================================
# Malformed Payloads
# ==========================================================================

class TestMalformedPayloads:
    """Anything undecodable becomes an Unknown event."""

    @pytest.mark.parametrize("payload", [None, [], "text", 42, {"foo": "bar"}, {"type": None}])
    def test_garbage_degrades_to_unknown(self, payload):
        event = normalize(payload)
        assert event.kind == EventKind.UNKNOWN
        assert event.id
        assert event.rpg_message

    def test_wrong_field_type_degrades_to_unknown(self):
        event = normalize({"hook_event_name": "PostToolUse", "session_id": 123, "tool_name": "Edit"})
        assert event.kind == EventKind.UNKNOWN
        assert event.session_id is None
        assert "PostToolUse" in event.rpg_message

    def test_lone_surrogates_are_replaced(self):
        payload = json.loads(
            '{"hook_event_name": "PostToolUse", "session_id": "S\\udc001", "tool_name": "Bash",'
            ' "tool_input": {"command": "ls \\ud800"}, "reason": "x\\udfff"}'
        )

        event = normalize(payload)

        assert event.session_id == "S?1"
        assert event.tool_input_summary == "ls ?"
        assert event.details == {"reason": "x?"}
        assert json.dumps(event.to_dict(), ensure_ascii=False).encode("utf-8")


# ==========================================================================
# Wire Shape
# ==========================================================================

class TestWireShape:
    """Tests for the battle log serialization."""

    def test_to_dict_is_camel_case_and_sparse(self):
        event = normalize({
            "hook_event_name": "PostToolUse",
            "tool_name": "Grep",
            "tool_input": {"pattern": "foo"},
        })
        data = event.to_dict()

        assert data["type"] == "PostToolUse"
        assert data["toolInputSummary"] == '"foo"'
        assert data["rpgIcon"] == "sword"
        assert "sessionId" not in data
        assert "sessionSummary" not in data
        assert "isSessionEnd" not in data
