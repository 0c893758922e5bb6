"""Search across every conversation source and merge the results."""

import logging
import re
from datetime import datetime
from typing import Iterable, Optional

from .config import RecallConfig
from .errors import ValidationError
from .models import ALL, ALL_SOURCES, SEARCH_MODES, SearchResult
from .sources import get_source

logger = logging.getLogger(__name__)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_iso_date(value: str, param_name: str) -> None:
    """Raise ValidationError unless value is a real YYYY-MM-DD calendar date."""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        raise ValidationError(
            f'Invalid {param_name} date: "{value}". Expected YYYY-MM-DD format (e.g., 2025-10-01)'
        )
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f'Invalid {param_name} date: "{value}". Not a valid calendar date.')


def resolve_sources(sources: Optional[Iterable[str]]) -> list[str]:
    """Expand ``all`` and put the requested source tags in canonical order."""
    if isinstance(sources, str):
        sources = [sources]
    requested = [ALL] if sources is None else [s.strip() for s in sources]
    if ALL in requested:
        return list(ALL_SOURCES)

    unknown = sorted(set(requested) - set(ALL_SOURCES))
    if unknown:
        raise ValidationError(
            f"Unknown source(s): {', '.join(unknown)}. Choose from: {', '.join(ALL_SOURCES + (ALL,))}"
        )
    return [name for name in ALL_SOURCES if name in requested]


def parse_sources_arg(value: Optional[str]) -> list[str]:
    """Split a comma-separated source list such as ``goose,memos``."""
    if not value:
        return [ALL]
    return [s.strip() for s in value.split(",") if s.strip()]


def _validate(mode: str, limit: int, after: Optional[str], before: Optional[str]) -> None:
    if mode not in SEARCH_MODES:
        raise ValidationError(f'Invalid mode: "{mode}". Choose from: {", ".join(SEARCH_MODES)}')
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"Invalid limit: {limit!r}. Expected a positive integer")
    if after:
        validate_iso_date(after, "--after")
    if before:
        validate_iso_date(before, "--before")


def rank_results(results: list[SearchResult], mode: str) -> list[SearchResult]:
    """Order merged results: newest first for text mode, else most similar first.

    Python's sort is stable, so ties keep source order and then the order
    each source returned.
    """
    if mode == "text":
        return sorted(results, key=lambda r: r.exchange.timestamp, reverse=True)
    return sorted(results, key=lambda r: r.similarity or 0.0, reverse=True)


def search_conversations(
    query: str,
    mode: str = "vector",
    limit: int = 10,
    after: Optional[str] = None,
    before: Optional[str] = None,
    sources: Optional[Iterable[str]] = None,
    config: Optional[RecallConfig] = None,
) -> list[SearchResult]:
    """Search the selected sources and return one ranked list.

    Args:
        query: Text to look for
        mode: "vector", "text" or "both"
        limit: Max results, applied per source and again after merging
        after: Only exchanges on or after this YYYY-MM-DD date
        before: Only exchanges on or before this YYYY-MM-DD date
        sources: Source tags to search, or ["all"] (the default)
        config: Storage locations and credentials

    Raises:
        ValidationError: A malformed argument. Nothing is searched.
    """
    _validate(mode, limit, after, before)
    source_names = resolve_sources(sources)
    config = config or RecallConfig()

    all_results: list[SearchResult] = []
    for name in source_names:
        source = get_source(name, config)
        if source is None:
            continue
        try:
            results = source.search(query, limit=limit, after=after, before=before, mode=mode)
        except Exception as e:
            # A failing source contributes nothing; the others still answer
            logger.warning(f"Search failed for {name}: {e}")
            continue
        logger.debug(f"{name}: {len(results)} results")
        all_results.extend(results)

    return rank_results(all_results, mode)[:limit]


def format_location(result: SearchResult) -> str:
    exchange = result.exchange
    if "://" in exchange.archive_path:
        return exchange.archive_path
    return f"{exchange.archive_path}:{exchange.line_start}-{exchange.line_end}"


def format_percent(similarity: float) -> int:
    """Round to a whole percentage, halves rounding up."""
    return int(similarity * 100 + 0.5)


def format_results(results: list[SearchResult]) -> str:
    """Render ranked results as a plain-text report."""
    if not results:
        return "No results found."

    output = f"Found {len(results)} relevant conversations:\n\n"

    for index, result in enumerate(results, start=1):
        exchange = result.exchange
        source_label = f"[{result.source}] " if result.source else ""
        output += f"{index}. {source_label}[{exchange.project}, {exchange.timestamp}]\n"

        if result.summary:
            output += f"   {result.summary}\n\n"

        if result.similarity is not None:
            output += f'   {format_percent(result.similarity)}% match: "{result.snippet}"\n'
        else:
            output += f'   Match: "{result.snippet}"\n'

        output += f"   {format_location(result)}\n\n"

    return output
