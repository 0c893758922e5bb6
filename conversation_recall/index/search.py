import logging
import math
from dataclasses import dataclass
from typing import Optional

from .database import ArchiveDatabase, ExchangeRow
from .embeddings import EmbeddingGenerator

logger = logging.getLogger(__name__)

# Text matches merged into a combined search count as exact hits
TEXT_MATCH_DISTANCE = 0.0


@dataclass
class ArchiveHit:
    row: ExchangeRow
    similarity: Optional[float]


class ArchiveSearch:
    """Lexical, vector and combined retrieval over the exchange archive."""

    def __init__(self, db: ArchiveDatabase, embedder: Optional[EmbeddingGenerator] = None):
        self._db = db
        self._embedder = embedder

    def _get_embedder(self) -> EmbeddingGenerator:
        if self._embedder is None:
            self._embedder = EmbeddingGenerator()
        return self._embedder

    def search(
        self,
        query: str,
        mode: str = "vector",
        limit: int = 10,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> list[ArchiveHit]:
        if mode == "text":
            return self.search_text(query, limit, after, before)
        if mode == "vector":
            return self.search_vector(query, limit, after, before)

        hits = self.search_vector(query, limit, after, before)
        seen = {hit.row.id for hit in hits}
        for hit in self.search_text(query, limit, after, before):
            if hit.row.id not in seen:
                seen.add(hit.row.id)
                hits.append(ArchiveHit(hit.row, 1.0 - TEXT_MATCH_DISTANCE))
        return hits

    def search_text(
        self,
        query: str,
        limit: int,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> list[ArchiveHit]:
        rows = self._db.search_text(query, limit, after, before)
        return [ArchiveHit(row, None) for row in rows]

    def search_vector(
        self,
        query: str,
        limit: int,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> list[ArchiveHit]:
        """Nearest exchanges by cosine distance within the date range."""
        query_embedding = self._get_embedder().embed_query(query)
        if query_embedding is None:
            logger.warning("Query embedding unavailable - skipping vector search")
            return []

        scored = []
        for row in self._db.get_embedded_exchanges(after, before):
            embedding = EmbeddingGenerator.deserialize_embedding(row.embedding)
            distance = self.cosine_distance(query_embedding, embedding)
            scored.append((distance, row))

        scored.sort(key=lambda item: item[0])
        return [ArchiveHit(row, min(max(1.0 - distance, 0.0), 1.0)) for distance, row in scored[:limit]]

    @staticmethod
    def cosine_distance(vec_a: list[float], vec_b: list[float]) -> float:
        """1 - cosine similarity. Mismatched or zero vectors are maximally far."""
        if len(vec_a) != len(vec_b):
            return 1.0

        dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
        norm_a = math.sqrt(sum(a * a for a in vec_a))
        norm_b = math.sqrt(sum(b * b for b in vec_b))

        if norm_a == 0 or norm_b == 0:
            return 1.0

        return 1.0 - dot_product / (norm_a * norm_b)
