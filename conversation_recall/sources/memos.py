"""memos remote memory source."""

import logging
from typing import Optional

import httpx

from ..errors import RecordParseError, SourceUnavailable
from ..models import MEMOS, Exchange, SearchResult
from . import register_source
from .base import ConversationSource, epoch_to_date, filter_by_date

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
SEARCH_PATH = "/memory/search"
ADD_MESSAGE_PATH = "/memory/add_message"

VALUE_MATCH_SCORE = 2
KEY_MATCH_SCORE = 1
MAX_SCORE = 3


def memory_similarity(memory: dict, query: str) -> float:
    """Score a memory against the query, bounded to [0, 1].

    A match in the memory value is worth 2, a match in its key 1, so only a
    memory matching in both reaches 1.0.
    """
    query_lower = query.lower()
    score = 0
    if query_lower in str(memory.get("memory_value") or "").lower():
        score += VALUE_MATCH_SCORE
    if query_lower in str(memory.get("memory_key") or "").lower():
        score += KEY_MATCH_SCORE
    return min(score / MAX_SCORE, 1.0) if score > 0 else 0.0


def memory_to_exchange(memory: dict) -> Exchange:
    """Turn one memos memory into an exchange with no assistant side."""
    if not isinstance(memory, dict):
        raise RecordParseError("memory is not an object")
    memory_id = memory.get("id")
    create_time = memory.get("create_time")
    if not memory_id or not isinstance(create_time, (int, float)):
        raise RecordParseError(f"memory {memory_id!r} lacks an id or create_time")

    tags = memory.get("tags") or []
    project = ", ".join(str(t) for t in tags) or "memos"

    try:
        return Exchange(
            id=str(memory_id),
            project=project,
            timestamp=epoch_to_date(create_time),
            user_message=str(memory.get("memory_value") or ""),
            assistant_message="",
            archive_path=f"memos://{memory_id}",
            source=MEMOS,
        )
    except ValueError as e:
        raise RecordParseError(str(e)) from e


@register_source
class MemosSource(ConversationSource):
    """Source for memories stored in the memos cloud API.

    Every search is one authenticated POST; nothing is cached between calls.
    """

    name = MEMOS
    display_name = "memos"
    icon = "☁"
    color = "blue"

    def __init__(self, config=None, client: Optional[httpx.Client] = None):
        super().__init__(config)
        self._client = client

    def is_available(self) -> bool:
        return self.config.memos.configured

    def describe_location(self) -> str:
        return self.config.memos.base_url

    def _post(self, path: str, payload: dict) -> dict:
        memos = self.config.memos
        url = f"{memos.base_url.rstrip('/')}{path}"
        headers = {"Authorization": f"Bearer {memos.api_key}"}

        logger.debug(f"POST {url}")
        try:
            if self._client is not None:
                response = self._client.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
            else:
                with httpx.Client(timeout=REQUEST_TIMEOUT) as client:
                    response = client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"memos request to {url} failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(f"memos returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise SourceUnavailable("memos returned an unexpected response")
        return body

    def search_memories(self, query: str, limit: int) -> list[dict]:
        """Call the memos search endpoint and return the raw memory list."""
        body = self._post(SEARCH_PATH, {"query": query, "memory_limit_number": limit})
        data = body.get("data")
        memories = data.get("memory_detail_list") if isinstance(data, dict) else None
        if body.get("code") != 0 or not isinstance(memories, list):
            raise SourceUnavailable(f"Memos API error: {body.get('message') or 'Unknown error'}")
        return memories

    def search(
        self,
        query: str,
        limit: int = 10,
        after: Optional[str] = None,
        before: Optional[str] = None,
        mode: str = "text",
    ) -> list[SearchResult]:
        if not self.is_available():
            logger.warning("Memos API key not configured; set MEMOS_API_KEY or configure memos-api-mcp in OpenCode")
            return []

        try:
            memories = self.search_memories(query, limit)
        except SourceUnavailable as e:
            logger.error(f"Error searching memos: {e}")
            return []

        similarities: dict[str, float] = {}
        exchanges = []
        for memory in memories:
            try:
                exchange = memory_to_exchange(memory)
            except RecordParseError as e:
                logger.warning(f"Skipping memos memory: {e}")
                continue
            similarities[exchange.id] = memory_similarity(memory, query)
            exchanges.append(exchange)

        exchanges = filter_by_date(exchanges, after, before)[:limit]
        return [SearchResult.for_exchange(e, similarity=similarities[e.id]) for e in exchanges]

    def add_memory(self, first_message: str, messages: list[dict]) -> bool:
        """Store a conversation in memos.

        ``messages`` are dicts with ``role``, ``content`` and optionally
        ``chat_time``. Returns True when memos accepted them.
        """
        if not self.is_available():
            logger.warning("Memos API key not configured")
            return False

        try:
            body = self._post(
                ADD_MESSAGE_PATH,
                {"conversation_first_message": first_message, "messages": messages},
            )
        except SourceUnavailable as e:
            logger.error(f"Error adding memory: {e}")
            return False
        return body.get("code") == 0
