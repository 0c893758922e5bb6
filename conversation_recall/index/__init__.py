"""SQLite archive of Claude Code exchanges with embedding search."""

from .database import ArchiveDatabase, ExchangeRow
from .embeddings import EMBEDDING_DIMENSIONS, EmbeddingGenerator
from .indexer import ArchiveIndexer
from .search import ArchiveHit, ArchiveSearch

__all__ = [
    "ArchiveDatabase",
    "ExchangeRow",
    "ArchiveIndexer",
    "ArchiveSearch",
    "ArchiveHit",
    "EmbeddingGenerator",
    "EMBEDDING_DIMENSIONS",
]
