"""Base classes and shared conversion rules for conversation sources."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config import RecallConfig
from ..errors import RecordParseError
from ..models import Exchange, SearchResult

logger = logging.getLogger(__name__)

SYSTEM_REMINDER = "<system-reminder>"


@dataclass
class Message:
    """A single chat message normalised from any backend."""

    role: str  # "user" or "assistant" (other roles are ignored when pairing)
    text: str
    timestamp: str  # YYYY-MM-DD
    id: str = ""
    line_start: int = 0
    line_end: int = 0


def epoch_to_date(seconds: float) -> str:
    """Convert seconds since the epoch to a UTC ``YYYY-MM-DD`` string."""
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError, TypeError) as e:
        raise RecordParseError(f"Invalid timestamp {seconds!r}: {e}") from e


def iso_to_date(value: str) -> str:
    """Convert an ISO-8601 timestamp (``Z`` suffix allowed) to a UTC date string."""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError) as e:
        raise RecordParseError(f"Invalid timestamp {value!r}: {e}") from e
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date().isoformat()


def extract_text_content(content, separator: str = "\n") -> str:
    """Extract plain text from string or typed-list message content.

    Only ``text`` items count; tool calls, tool results and system
    reminders are left out.
    """
    if isinstance(content, str):
        if content.strip().startswith(SYSTEM_REMINDER):
            return ""
        return content
    if isinstance(content, list):
        texts = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type") == "text":
                    text = item.get("text")
                    if isinstance(text, str) and text and not text.strip().startswith(SYSTEM_REMINDER):
                        texts.append(text)
            elif isinstance(item, str):
                texts.append(item)
        return separator.join(texts)
    return ""


def pair_messages(messages: list[Message]) -> list[tuple[Message, Message]]:
    """Pair each assistant message with the nearest unanswered user message.

    A user message replaces any earlier one still waiting for an answer,
    so only the latest question before a reply is kept. Assistant messages
    with nothing to answer are ignored.
    """
    pairs = []
    pending: Optional[Message] = None
    for message in messages:
        if message.role == "user":
            pending = message
        elif message.role == "assistant" and pending is not None:
            pairs.append((pending, message))
            pending = None
    return pairs


def filter_by_date(
    exchanges: list[Exchange],
    after: Optional[str] = None,
    before: Optional[str] = None,
) -> list[Exchange]:
    """Keep exchanges dated within [after, before]. Both bounds are inclusive."""
    if after:
        exchanges = [e for e in exchanges if e.timestamp >= after]
    if before:
        exchanges = [e for e in exchanges if e.timestamp <= before]
    return exchanges


def substring_score(exchange: Exchange, query_lower: str) -> int:
    """2 for a match in the user message, 1 for the assistant message, else 0."""
    if query_lower in exchange.user_message.lower():
        return 2
    if query_lower in exchange.assistant_message.lower():
        return 1
    return 0


def rank_by_substring(exchanges: list[Exchange], query: str, limit: int) -> list[Exchange]:
    """Drop non-matching exchanges and order the rest by substring score.

    The sort is stable, so equally scored exchanges keep their original
    (chronological) order.
    """
    query_lower = query.lower()
    scored = [(substring_score(e, query_lower), e) for e in exchanges]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: item[0], reverse=True)
    return [e for _, e in scored[:limit]]


class ConversationSource(ABC):
    """Abstract base class for conversation sources.

    Each backend (the Claude Code archive, OpenCode, Goose, memos) implements
    this interface so the aggregator can search them all the same way.
    """

    # Source identity
    name: str = ""  # source tag: "claude-code", "opencode", etc.
    display_name: str = ""
    icon: str = ""
    color: str = ""

    def __init__(self, config: Optional[RecallConfig] = None):
        self.config = config or RecallConfig()

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backing store or service is configured and present."""
        ...

    @abstractmethod
    def search(
        self,
        query: str,
        limit: int = 10,
        after: Optional[str] = None,
        before: Optional[str] = None,
        mode: str = "text",
    ) -> list[SearchResult]:
        """Search this source. Returns at most ``limit`` results."""
        ...

    def describe_location(self) -> str:
        """Human-readable location of the backing store."""
        return ""


class SessionStoreSource(ConversationSource):
    """A source backed by session files on the local disk."""

    @abstractmethod
    def get_sessions_dir(self) -> Path:
        """Return the directory where sessions are stored."""
        ...

    def is_available(self) -> bool:
        return self.get_sessions_dir().exists()

    def describe_location(self) -> str:
        return str(self.get_sessions_dir())

    @abstractmethod
    def list_raw_sessions(self) -> list[Path]:
        """Discover all session handles for this source."""
        ...

    @abstractmethod
    def load_session(self, handle: Path) -> Optional[tuple[dict, list[Message]]]:
        """Load session metadata and its messages in chronological order."""
        ...

    @abstractmethod
    def to_exchanges(self, handle: Path, metadata: dict, messages: list[Message]) -> list[Exchange]:
        """Pair messages into exchanges."""
        ...

    def get_all_exchanges(self) -> list[Exchange]:
        """Load and convert every session. A broken session is skipped."""
        exchanges: list[Exchange] = []
        for handle in self.list_raw_sessions():
            try:
                loaded = self.load_session(handle)
            except RecordParseError as e:
                logger.warning(f"Skipping {self.name} session {handle}: {e}")
                continue
            if loaded is None:
                continue
            metadata, messages = loaded
            exchanges.extend(self.to_exchanges(handle, metadata, messages))
        return exchanges

    def search(
        self,
        query: str,
        limit: int = 10,
        after: Optional[str] = None,
        before: Optional[str] = None,
        mode: str = "text",
    ) -> list[SearchResult]:
        if not self.is_available():
            logger.debug(f"{self.name} sessions not found at {self.get_sessions_dir()}")
            return []

        exchanges = filter_by_date(self.get_all_exchanges(), after, before)
        ranked = rank_by_substring(exchanges, query, limit)
        return [SearchResult.for_exchange(e, similarity=1.0) for e in ranked]
