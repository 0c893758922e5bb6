"""Tests for the local session-store sources."""

import json

import pytest

from conversation_recall.models import ALL_SOURCES, CLAUDE_CODE, GOOSE, OPENCODE
from conversation_recall.sources import get_all_sources, get_source
from conversation_recall.sources.claude_code import (
    ClaudeCodeSource,
    decode_path,
    parse_transcript_line,
    read_summary,
)
from conversation_recall.sources.goose import GooseSource
from conversation_recall.sources.opencode import OpenCodeSource

from conftest import (
    FEB_1_2025,
    JAN_1_2025,
    MAR_1_2025,
    write_goose_session,
    write_json,
    write_opencode_session,
)


class TestRegistry:
    """Tests for source registration."""

    def test_all_sources_in_canonical_order(self, recall_config):
        names = [s.name for s in get_all_sources(recall_config)]
        assert names == list(ALL_SOURCES)

    def test_get_source(self, recall_config):
        source = get_source(GOOSE, recall_config)
        assert isinstance(source, GooseSource)
        assert source.config is recall_config

    def test_get_unknown_source(self):
        assert get_source("cursor") is None

    def test_source_attributes(self):
        for source in get_all_sources():
            assert source.display_name
            assert source.icon
            assert source.color


class TestOpenCodeSource:
    """Tests for the OpenCode source."""

    @pytest.fixture
    def source(self, recall_config):
        return OpenCodeSource(recall_config)

    @pytest.fixture
    def storage(self, recall_config):
        storage = recall_config.opencode_storage_dir
        write_opencode_session(storage, "ses_001", "webapp", [
            {"id": "msg_001", "role": "user", "created": JAN_1_2025, "text": "How should I refactor the router?"},
            {"id": "msg_002", "role": "assistant", "created": JAN_1_2025 + 5, "text": "Split it by resource."},
            {"id": "msg_003", "role": "user", "created": JAN_1_2025 + 60, "text": "And the tests?"},
            {"id": "msg_004", "role": "assistant", "created": JAN_1_2025 + 65,
             "content": [{"type": "text", "text": "Move fixtures into conftest."},
                         {"type": "tool_use", "name": "edit"}]},
        ])
        return storage

    def test_unavailable_without_storage(self, source):
        assert not source.is_available()
        assert source.search("refactor") == []

    def test_exchanges_from_parts_and_inline_content(self, source, storage):
        exchanges = source.get_all_exchanges()
        assert len(exchanges) == 2

        first, second = exchanges
        assert first.id == "msg_002"
        assert first.project == "webapp"
        assert first.timestamp == "2025-01-01"
        assert first.user_message == "How should I refactor the router?"
        assert first.assistant_message == "Split it by resource."
        assert first.source == OPENCODE
        assert first.archive_path.endswith("ses_001.json")
        assert second.assistant_message == "Move fixtures into conftest."

    def test_messages_ordered_by_creation_time(self, source, recall_config):
        storage = recall_config.opencode_storage_dir
        # File names sort opposite to creation order
        write_opencode_session(storage, "ses_002", "api", [
            {"id": "msg_b", "role": "user", "created": FEB_1_2025, "text": "question"},
            {"id": "msg_a", "role": "assistant", "created": FEB_1_2025 + 1, "text": "answer"},
        ])
        exchanges = source.get_all_exchanges()
        assert [(e.user_message, e.assistant_message) for e in exchanges] == [("question", "answer")]

    def test_search_substring(self, source, storage):
        results = source.search("REFACTOR")
        assert len(results) == 1
        assert results[0].similarity == 1.0
        assert results[0].exchange.id == "msg_002"

    def test_search_date_filter(self, source, storage):
        assert source.search("refactor", after="2025-01-02") == []
        assert len(source.search("refactor", before="2025-01-01")) == 1

    def test_malformed_message_skipped(self, source, storage):
        (storage / "message" / "ses_001" / "msg_000.json").write_text("{not json")
        assert len(source.get_all_exchanges()) == 2

    def test_badly_typed_message_skipped(self, source, storage):
        write_json(storage / "message" / "ses_001" / "msg_000.json", {"id": "msg_000", "role": "user", "time": "yesterday"})
        write_json(storage / "message" / "ses_001" / "msg_005.json", {"id": 5, "role": "user", "time": {"created": JAN_1_2025}})
        results = source.search("refactor")
        assert [r.exchange.id for r in results] == ["msg_002"]

    def test_non_string_session_id_skipped(self, source, storage):
        write_json(storage / "session" / "webapp" / "ses_998.json", {"id": 998, "projectID": "webapp"})
        assert len(source.get_all_exchanges()) == 2

    def test_malformed_session_skipped(self, source, storage):
        (storage / "session" / "webapp" / "ses_999.json").write_text("[]")
        assert len(source.get_all_exchanges()) == 2

    def test_missing_project_id(self, source, recall_config):
        storage = recall_config.opencode_storage_dir
        write_opencode_session(storage, "ses_003", "x", [
            {"id": "msg_1", "role": "user", "created": JAN_1_2025, "text": "q"},
            {"id": "msg_2", "role": "assistant", "created": JAN_1_2025 + 1, "text": "a"},
        ])
        write_json(storage / "session" / "x" / "ses_003.json", {"id": "ses_003"})
        assert source.get_all_exchanges()[0].project == "unknown"

    def test_search_is_repeatable(self, source, storage):
        first = source.search("refactor")
        second = source.search("refactor")
        assert [r.exchange for r in first] == [r.exchange for r in second]


class TestGooseSource:
    """Tests for the Goose source."""

    @pytest.fixture
    def source(self, recall_config):
        return GooseSource(recall_config)

    @pytest.fixture
    def session_file(self, recall_config):
        return write_goose_session(recall_config.goose_sessions_dir, "20250201_1", [
            {"role": "user", "created": FEB_1_2025, "text": "Please refactor the CLI"},
            {"role": "assistant", "created": FEB_1_2025 + 10, "text": "Done, see main.py"},
            "{broken line",
            {"role": "user", "created": MAR_1_2025, "text": "Add a changelog"},
            {"role": "assistant", "created": MAR_1_2025 + 10, "text": "Added CHANGELOG.md"},
        ])

    def test_exchanges(self, source, session_file):
        exchanges = source.get_all_exchanges()
        assert len(exchanges) == 2

        first = exchanges[0]
        assert first.id == "20250201_1-3"
        assert first.project == "20250201_1"
        assert first.timestamp == "2025-02-01"
        assert first.line_start == 2
        assert first.line_end == 3
        assert first.archive_path == str(session_file)
        assert first.source == GOOSE

        second = exchanges[1]
        assert second.timestamp == "2025-03-01"
        assert second.line_start == 5
        assert second.line_end == 6

    def test_ids_unique_within_same_second(self, source, recall_config):
        write_goose_session(recall_config.goose_sessions_dir, "s", [
            {"role": "user", "created": JAN_1_2025, "text": "first question"},
            {"role": "assistant", "created": JAN_1_2025 + 1, "text": "first answer"},
            {"role": "user", "created": JAN_1_2025 + 1, "text": "second question"},
            {"role": "assistant", "created": JAN_1_2025 + 1, "text": "second answer"},
        ])
        ids = [e.id for e in source.get_all_exchanges()]
        assert ids == ["s-3", "s-5"]

    def test_empty_file_ignored(self, source, recall_config, session_file):
        (recall_config.goose_sessions_dir / "empty.jsonl").write_text("")
        assert len(source.get_all_exchanges()) == 2

    def test_bad_header_skipped(self, source, recall_config, session_file):
        (recall_config.goose_sessions_dir / "bad.jsonl").write_text("nope\n")
        assert len(source.get_all_exchanges()) == 2

    def test_search(self, source, session_file):
        results = source.search("changelog", limit=5)
        assert len(results) == 1
        assert results[0].exchange.user_message == "Add a changelog"
        assert results[0].similarity == 1.0

    def test_search_respects_limit(self, source, session_file):
        assert len(source.search("a", limit=1)) == 1


class TestClaudeCodeParsing:
    """Tests for Claude Code transcript parsing."""

    def test_decode_path(self):
        assert decode_path("-home-user-webapp") == "/home/user/webapp"

    def test_user_record(self):
        line = json.dumps({
            "type": "user",
            "uuid": "u1",
            "timestamp": "2025-03-01T10:00:00Z",
            "cwd": "/home/user/webapp",
            "message": {"role": "user", "content": "Fix login"},
        })
        message, cwd = parse_transcript_line(line, 1, "fallback")
        assert message.role == "user"
        assert message.text == "Fix login"
        assert message.id == "u1"
        assert message.timestamp == "2025-03-01"
        assert cwd == "/home/user/webapp"

    def test_tool_only_record_has_no_message(self):
        line = json.dumps({
            "type": "assistant",
            "uuid": "a2",
            "timestamp": "2025-03-01T10:00:00Z",
            "message": {"role": "assistant", "content": [{"type": "tool_use", "name": "Read"}]},
        })
        message, _ = parse_transcript_line(line, 2, "fallback")
        assert message is None

    def test_non_message_record(self):
        message, _ = parse_transcript_line(json.dumps({"type": "summary", "summary": "x"}), 1, "f")
        assert message is None

    def test_summary_file(self, tmp_path):
        transcript = tmp_path / "abc.jsonl"
        transcript.write_text("")
        assert read_summary(str(transcript)) is None
        (tmp_path / "abc-summary.txt").write_text("Fixed the login flow.\n")
        assert read_summary(str(transcript)) == "Fixed the login flow."

    def test_unavailable_without_archive(self, recall_config):
        source = ClaudeCodeSource(recall_config)
        assert source.name == CLAUDE_CODE
        assert not source.is_available()
        assert source.search("anything", mode="text") == []
