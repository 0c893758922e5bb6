"""Shared fixtures: on-disk session stores for each local source."""

import json
from pathlib import Path

import pytest

from conversation_recall.config import RecallConfig

# Noon UTC, so the date never depends on the local timezone
JAN_1_2025 = 1735732800
FEB_1_2025 = 1738411200
MAR_1_2025 = 1740830400


@pytest.fixture
def recall_config(tmp_path):
    """A config whose every location lives under tmp_path and holds no credentials."""
    return RecallConfig(
        archive_db_path=tmp_path / "archive" / "conversations.db",
        claude_projects_dir=tmp_path / "claude" / "projects",
        opencode_storage_dir=tmp_path / "opencode" / "storage",
        goose_sessions_dir=tmp_path / "goose" / "sessions",
        opencode_config_path=tmp_path / "opencode.json",
        environ={},
    )


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


def write_opencode_session(storage: Path, session_id: str, project: str, messages: list[dict]) -> Path:
    """Write a session file plus one msg_*.json per message.

    Each message dict carries id, role, created (seconds) and either
    ``text`` (stored as a part file) or ``content`` (stored inline).
    """
    session_file = write_json(
        storage / "session" / project / f"{session_id}.json",
        {"id": session_id, "projectID": project, "title": "test session"},
    )
    for msg in messages:
        body = {
            "id": msg["id"],
            "sessionID": session_id,
            "role": msg["role"],
            "time": {"created": msg["created"] * 1000},
        }
        if "content" in msg:
            body["content"] = msg["content"]
        else:
            write_json(
                storage / "part" / msg["id"] / "prt_0001.json",
                {"type": "text", "text": msg["text"]},
            )
        write_json(storage / "message" / session_id / f"{msg['id']}.json", body)
    return session_file


def write_goose_session(sessions_dir: Path, name: str, messages: list, header: dict = None) -> Path:
    """Write a Goose JSONL session. Raw strings in ``messages`` are written as-is."""
    sessions_dir.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(header or {"working_dir": "/home/user/project", "description": name})]
    for msg in messages:
        if isinstance(msg, str):
            lines.append(msg)
        else:
            lines.append(json.dumps({
                "role": msg["role"],
                "created": msg["created"],
                "content": [{"type": "text", "text": msg["text"]}],
            }))
    path = sessions_dir / f"{name}.jsonl"
    path.write_text("\n".join(lines) + "\n")
    return path


class FakeEmbedder:
    """Embedder returning fixed vectors, keyed by substring of the text."""

    model = "fake-embedding"

    def __init__(self, vectors: dict = None, available: bool = True):
        self.vectors = vectors or {}
        self.available = available
        self.queries: list[str] = []

    def _lookup(self, text: str):
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        return None

    def embed_query(self, query: str):
        self.queries.append(query)
        if not self.available:
            return None
        return self._lookup(query)

    def embed_texts(self, texts: list[str]):
        if not self.available:
            return [None for _ in texts]
        return [self._lookup(t) for t in texts]
