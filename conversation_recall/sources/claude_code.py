"""Claude Code source, searched through the vector-indexed archive."""

import json
import logging
from pathlib import Path
from typing import Optional

from ..errors import RecordParseError
from ..index.database import ArchiveDatabase
from ..index.embeddings import EmbeddingGenerator
from ..index.search import ArchiveSearch
from ..models import CLAUDE_CODE, Exchange, SearchResult
from . import register_source
from .base import Message, SessionStoreSource, extract_text_content, iso_to_date, pair_messages

logger = logging.getLogger(__name__)

SUMMARY_SUFFIX = "-summary.txt"


def decode_path(encoded: str) -> str:
    """Decode directory name back to original path."""
    return encoded.replace("-", "/")


def read_summary(archive_path: str) -> Optional[str]:
    """Read the summary file stored next to an archived transcript, if any."""
    if not archive_path.endswith(".jsonl"):
        return None
    summary_path = Path(archive_path[: -len(".jsonl")] + SUMMARY_SUFFIX)
    if not summary_path.exists():
        return None
    try:
        return summary_path.read_text(encoding="utf-8").strip() or None
    except (IOError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read summary {summary_path}: {e}")
        return None


def parse_transcript_line(line: str, line_num: int, fallback_id: str) -> tuple[Optional[Message], str]:
    """Parse one JSONL transcript record.

    Returns the message (None for records without conversational text,
    such as tool calls, tool results and snapshots) and the record's cwd.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordParseError(f"line {line_num}: {e}") from e
    if not isinstance(data, dict):
        raise RecordParseError(f"line {line_num}: expected a JSON object")

    cwd = data.get("cwd") or ""
    if data.get("type") not in ("user", "assistant"):
        return None, cwd

    msg = data.get("message")
    if not isinstance(msg, dict):
        raise RecordParseError(f"line {line_num}: missing message body")
    role = msg.get("role") or data["type"]
    text = extract_text_content(msg.get("content", ""))
    if not text:
        return None, cwd

    timestamp = data.get("timestamp")
    if not timestamp:
        raise RecordParseError(f"line {line_num}: missing timestamp")

    message = Message(
        role=role,
        text=text,
        timestamp=iso_to_date(timestamp),
        id=data.get("uuid") or fallback_id,
        line_start=line_num,
        line_end=line_num,
    )
    return message, cwd


@register_source
class ClaudeCodeSource(SessionStoreSource):
    """Source for Claude Code conversations.

    Transcripts live under ``~/.claude/projects/<encoded path>/*.jsonl``.
    Searches go to the archive database that ``ArchiveIndexer`` builds from
    them, which supports text, vector and combined retrieval.
    """

    name = CLAUDE_CODE
    display_name = "Claude Code"
    icon = "🧠"
    color = "cyan"

    def __init__(self, config=None, embedder: Optional[EmbeddingGenerator] = None):
        super().__init__(config)
        self._embedder = embedder

    def get_sessions_dir(self) -> Path:
        return self.config.claude_projects_dir

    def is_available(self) -> bool:
        return self.config.archive_db_path.exists()

    def describe_location(self) -> str:
        return str(self.config.archive_db_path)

    def list_raw_sessions(self) -> list[Path]:
        """Discover all JSONL transcripts, one directory per project."""
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return []

        files = []
        for project_dir in sorted(sessions_dir.iterdir()):
            if not project_dir.is_dir():
                continue
            files.extend(sorted(project_dir.glob("*.jsonl")))
        return files

    def load_session(self, handle: Path) -> Optional[tuple[dict, list[Message]]]:
        messages: list[Message] = []
        cwd = ""
        try:
            with open(handle) as f:
                for line_num, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        message, line_cwd = parse_transcript_line(line, line_num, f"{handle.stem}-{line_num}")
                    except RecordParseError as e:
                        logger.warning(f"Skipping Claude Code record in {handle.name}: {e}")
                        continue

                    cwd = cwd or line_cwd
                    if message is None:
                        continue

                    # One assistant turn spans several records; join them
                    if message.role == "assistant" and messages and messages[-1].role == "assistant":
                        previous = messages[-1]
                        previous.text = f"{previous.text}\n\n{message.text}"
                        previous.line_end = message.line_end
                        continue
                    messages.append(message)
        except (IOError, UnicodeDecodeError) as e:
            raise RecordParseError(f"{handle}: {e}") from e

        project_path = Path(cwd) if cwd else Path(decode_path(handle.parent.name))
        metadata = {
            "session_id": handle.stem,
            "project": project_path.name or handle.parent.name,
        }
        return metadata, messages

    def to_exchanges(self, handle: Path, metadata: dict, messages: list[Message]) -> list[Exchange]:
        exchanges = []
        for user, assistant in pair_messages(messages):
            if not user.text and not assistant.text:
                continue
            exchanges.append(Exchange(
                id=assistant.id,
                project=metadata["project"],
                timestamp=user.timestamp,
                user_message=user.text,
                assistant_message=assistant.text,
                archive_path=str(handle),
                line_start=user.line_start,
                line_end=assistant.line_end,
                source=self.name,
            ))
        return exchanges

    def search(
        self,
        query: str,
        limit: int = 10,
        after: Optional[str] = None,
        before: Optional[str] = None,
        mode: str = "vector",
    ) -> list[SearchResult]:
        if not self.is_available():
            logger.debug(f"Claude Code archive not found at {self.config.archive_db_path}")
            return []

        embedder = self._embedder
        if embedder is None and mode != "text":
            embedder = EmbeddingGenerator(self.config.openai_api_key, environ=self.config.environ)

        with ArchiveDatabase(self.config.archive_db_path) as db:
            hits = ArchiveSearch(db, embedder).search(query, mode, limit, after, before)

        results = []
        for hit in hits:
            try:
                exchange = hit.row.to_exchange()
            except ValueError as e:
                logger.warning(f"Skipping archived exchange {hit.row.id}: {e}")
                continue
            results.append(SearchResult.for_exchange(
                exchange,
                similarity=hit.similarity,
                summary=read_summary(hit.row.archive_path),
            ))
        return results
