"""Tests for the memos source and credential resolution."""

import json

import httpx
import pytest

from conversation_recall.config import RecallConfig, load_memos_config
from conversation_recall.models import MEMOS
from conversation_recall.sources.memos import MemosSource, memory_similarity, memory_to_exchange

from conftest import FEB_1_2025, JAN_1_2025

MEMORIES = [
    {
        "id": "mem-1",
        "memory_key": "refactor plan",
        "memory_value": "We agreed to refactor the parser first",
        "create_time": JAN_1_2025,
        "tags": ["work", "parser"],
    },
    {
        "id": "mem-2",
        "memory_key": "deploy notes",
        "memory_value": "Refactor deploy scripts after launch",
        "create_time": FEB_1_2025,
        "tags": [],
    },
    {
        "id": "mem-3",
        "memory_key": "broken",
        "memory_value": "no timestamp here",
    },
]


def memos_config(tmp_path, **environ):
    environ.setdefault("MEMOS_API_KEY", "secret-key")
    environ.setdefault("MEMOS_BASE_URL", "https://memos.test")
    return RecallConfig(environ=environ, opencode_config_path=tmp_path / "missing.json")


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def ok_response(memories):
    return httpx.Response(200, json={"code": 0, "data": {"memory_detail_list": memories}})


class TestMemorySimilarity:
    """Tests for memory scoring."""

    def test_value_and_key_match(self):
        assert memory_similarity(MEMORIES[0], "refactor") == 1.0

    def test_value_only_match(self):
        assert memory_similarity(MEMORIES[1], "refactor") == pytest.approx(2 / 3)

    def test_key_only_match(self):
        assert memory_similarity({"memory_key": "plan", "memory_value": "x"}, "plan") == pytest.approx(1 / 3)

    def test_no_match(self):
        assert memory_similarity(MEMORIES[0], "kubernetes") == 0.0


class TestMemoryConversion:
    """Tests for turning memories into exchanges."""

    def test_fields(self):
        exchange = memory_to_exchange(MEMORIES[0])
        assert exchange.id == "mem-1"
        assert exchange.project == "work, parser"
        assert exchange.timestamp == "2025-01-01"
        assert exchange.user_message == "We agreed to refactor the parser first"
        assert exchange.assistant_message == ""
        assert exchange.archive_path == "memos://mem-1"
        assert exchange.source == MEMOS

    def test_untagged_project(self):
        assert memory_to_exchange(MEMORIES[1]).project == "memos"


class TestMemosSource:
    """Tests for searching memos over HTTP."""

    def test_search_request_and_results(self, tmp_path):
        requests = []

        def handler(request):
            requests.append(request)
            return ok_response(MEMORIES)

        source = MemosSource(memos_config(tmp_path), client=mock_client(handler))
        results = source.search("refactor", limit=5)

        assert len(requests) == 1
        request = requests[0]
        assert str(request.url) == "https://memos.test/memory/search"
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert json.loads(request.content) == {"query": "refactor", "memory_limit_number": 5}

        assert [r.exchange.id for r in results] == ["mem-1", "mem-2"]
        assert results[0].similarity == 1.0
        assert results[1].similarity == pytest.approx(2 / 3)
        assert results[0].source == MEMOS

    def test_search_date_filter_and_limit(self, tmp_path):
        source = MemosSource(memos_config(tmp_path), client=mock_client(lambda r: ok_response(MEMORIES)))
        assert [r.exchange.id for r in source.search("refactor", after="2025-01-15")] == ["mem-2"]
        assert len(source.search("refactor", limit=1)) == 1

    def test_api_error_code(self, tmp_path):
        def handler(request):
            return httpx.Response(200, json={"code": 401, "message": "bad key"})

        source = MemosSource(memos_config(tmp_path), client=mock_client(handler))
        assert source.search("refactor") == []

    def test_unexpected_data_shape(self, tmp_path):
        def handler(request):
            return httpx.Response(200, json={"code": 0, "data": ["not", "an", "object"]})

        source = MemosSource(memos_config(tmp_path), client=mock_client(handler))
        assert source.search("refactor") == []

    def test_http_error(self, tmp_path):
        source = MemosSource(memos_config(tmp_path), client=mock_client(lambda r: httpx.Response(500)))
        assert source.search("refactor") == []

    def test_connection_error(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = MemosSource(memos_config(tmp_path), client=mock_client(handler))
        assert source.search("refactor") == []

    def test_unconfigured(self, tmp_path):
        def handler(request):
            pytest.fail("no request expected without credentials")

        config = RecallConfig(environ={}, opencode_config_path=tmp_path / "missing.json")
        source = MemosSource(config, client=mock_client(handler))
        assert not source.is_available()
        assert source.search("refactor") == []
        assert source.add_memory("hi", []) is False

    def test_add_memory(self, tmp_path):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"code": 0, "data": {}})

        source = MemosSource(memos_config(tmp_path), client=mock_client(handler))
        messages = [{"role": "user", "content": "remember this"}]
        assert source.add_memory("remember this", messages) is True

        assert str(requests[0].url) == "https://memos.test/memory/add_message"
        assert json.loads(requests[0].content) == {
            "conversation_first_message": "remember this",
            "messages": messages,
        }


class TestMemosConfig:
    """Tests for memos credential resolution."""

    @pytest.fixture
    def opencode_config(self, tmp_path):
        path = tmp_path / "opencode.json"
        path.write_text(json.dumps({
            "mcp": {
                "memos-api-mcp": {
                    "type": "local",
                    "environment": {
                        "MEMOS_API_KEY": "file-key",
                        "MEMOS_USER_ID": "file-user",
                        "MEMOS_CHANNEL": "FILE",
                    },
                },
            },
        }))
        return path

    def test_environment_wins(self, opencode_config):
        config = load_memos_config({"MEMOS_API_KEY": "env-key", "MEMOS_USER_ID": "env-user"}, opencode_config)
        assert config.api_key == "env-key"
        assert config.user_id == "env-user"
        assert config.channel == "MODELSCOPE"

    def test_file_fallback(self, opencode_config):
        config = load_memos_config({}, opencode_config)
        assert config.configured
        assert config.api_key == "file-key"
        assert config.user_id == "file-user"
        assert config.channel == "FILE"
        assert config.base_url == "https://api.memos.ai"

    def test_base_url_from_environment(self, opencode_config):
        config = load_memos_config({"MEMOS_BASE_URL": "https://memos.local"}, opencode_config)
        assert config.api_key == "file-key"
        assert config.base_url == "https://memos.local"

    def test_missing_file(self, tmp_path):
        config = load_memos_config({}, tmp_path / "missing.json")
        assert not config.configured

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "opencode.json"
        path.write_text("{broken")
        assert not load_memos_config({}, path).configured

    @pytest.mark.parametrize("mcp", [[], "memos-api-mcp", {"memos-api-mcp": ["x"]}])
    def test_unexpected_mcp_shape(self, tmp_path, mcp):
        path = tmp_path / "opencode.json"
        path.write_text(json.dumps({"mcp": mcp}))
        config = RecallConfig(environ={}, opencode_config_path=path)
        assert not MemosSource(config).is_available()

    def test_recall_config_resolves_once(self, tmp_path, opencode_config):
        config = RecallConfig(environ={}, opencode_config_path=opencode_config)
        assert config.memos.api_key == "file-key"
        opencode_config.unlink()
        assert config.memos.api_key == "file-key"
