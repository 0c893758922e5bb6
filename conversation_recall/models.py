"""Unified exchange model for all conversation sources."""

from dataclasses import dataclass
from typing import Optional

# Source tags
CLAUDE_CODE = "claude-code"
OPENCODE = "opencode"
GOOSE = "goose"
MEMOS = "memos"
ALL = "all"

ALL_SOURCES = (CLAUDE_CODE, OPENCODE, GOOSE, MEMOS)

SEARCH_MODES = ("vector", "text", "both")

SNIPPET_LENGTH = 200


@dataclass(frozen=True)
class Exchange:
    """One user message paired with the assistant reply that answered it."""

    id: str
    project: str
    timestamp: str  # YYYY-MM-DD, from the user turn
    user_message: str
    assistant_message: str
    archive_path: str  # file path or a source URI like memos://<id>
    line_start: int = 0
    line_end: int = 0
    source: str = ""

    def __post_init__(self):
        if not self.user_message and not self.assistant_message:
            raise ValueError(f"Exchange {self.id!r} has no message text")


@dataclass
class SearchResult:
    """A ranked exchange with its similarity score and display snippet."""

    exchange: Exchange
    similarity: Optional[float]
    snippet: str
    summary: Optional[str] = None

    @property
    def source(self) -> str:
        return self.exchange.source

    @classmethod
    def for_exchange(
        cls,
        exchange: Exchange,
        similarity: Optional[float],
        summary: Optional[str] = None,
    ) -> "SearchResult":
        return cls(
            exchange=exchange,
            similarity=similarity,
            snippet=make_snippet(exchange.user_message),
            summary=summary,
        )


def make_snippet(text: str, max_len: int = SNIPPET_LENGTH) -> str:
    """First ``max_len`` characters of text, with an ellipsis when cut."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
