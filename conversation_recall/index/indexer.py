"""Archive indexer for full and incremental indexing of Claude Code transcripts."""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from ..errors import RecordParseError
from ..models import Exchange
from .database import ArchiveDatabase, ExchangeRow
from .embeddings import EmbeddingGenerator

if TYPE_CHECKING:
    from ..sources.base import SessionStoreSource

logger = logging.getLogger(__name__)

MTIME_KEY_PREFIX = "mtime:"


def exchange_text(exchange: Exchange) -> str:
    """Text that represents an exchange in embedding space."""
    return f"User: {exchange.user_message}\n\nAssistant: {exchange.assistant_message}"


class ArchiveIndexer:
    """Index transcripts from a session-store source into the archive."""

    def __init__(
        self,
        db: ArchiveDatabase,
        source: "SessionStoreSource",
        embedder: Optional[EmbeddingGenerator] = None,
    ):
        self.db = db
        self.source = source
        self.embedder = embedder or EmbeddingGenerator()

    def index(
        self,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
        force: bool = False,
    ) -> dict:
        """
        Index every transcript whose mtime changed since the last run.

        Args:
            progress_callback: Optional callback(current, total, file_name) for progress
            force: Reindex files even when their mtime is unchanged

        Returns:
            Stats dict with files_scanned, files_indexed, exchanges_indexed,
            embeddings_created, time_ms
        """
        start_time = time.time()
        stats = {
            "files_scanned": 0,
            "files_indexed": 0,
            "exchanges_indexed": 0,
            "embeddings_created": 0,
            "time_ms": 0,
        }

        handles = self.source.list_raw_sessions()
        total = len(handles)

        for current, handle in enumerate(handles, start=1):
            if progress_callback:
                progress_callback(current, total, handle.name)
            stats["files_scanned"] += 1

            try:
                mtime = str(int(handle.stat().st_mtime))
            except OSError:
                continue

            key = f"{MTIME_KEY_PREFIX}{handle}"
            if not force and self.db.get_index_meta(key) == mtime:
                continue

            try:
                loaded = self.source.load_session(handle)
            except RecordParseError as e:
                logger.warning(f"Skipping transcript {handle}: {e}")
                continue
            if loaded is None:
                continue

            metadata, messages = loaded
            exchanges = self.source.to_exchanges(handle, metadata, messages)
            rows = self._build_rows(exchanges)

            self.db.delete_exchanges_for_archive(str(handle))
            self.db.upsert_exchanges(rows)
            self.db.set_index_meta(key, mtime)

            stats["files_indexed"] += 1
            stats["exchanges_indexed"] += len(rows)
            stats["embeddings_created"] += sum(1 for r in rows if r.embedding is not None)

        stats["time_ms"] = int((time.time() - start_time) * 1000)
        logger.info(
            f"Indexed {stats['exchanges_indexed']} exchanges from "
            f"{stats['files_indexed']}/{stats['files_scanned']} transcripts"
        )
        return stats

    def _build_rows(self, exchanges: list[Exchange]) -> list[ExchangeRow]:
        if not exchanges:
            return []

        if self.embedder.available:
            embeddings = self.embedder.embed_texts([exchange_text(e) for e in exchanges])
        else:
            embeddings = [None for _ in exchanges]

        rows = []
        for exchange, embedding in zip(exchanges, embeddings):
            if embedding is None:
                rows.append(ExchangeRow.from_exchange(exchange))
            else:
                rows.append(ExchangeRow.from_exchange(
                    exchange,
                    embedding=EmbeddingGenerator.serialize_embedding(embedding),
                    embedding_model=self.embedder.model,
                ))
        return rows

    def embed_missing(self, batch_size: int = 100) -> int:
        """Embed archived exchanges that were indexed without an embedding."""
        if not self.embedder.available:
            return 0

        created = 0
        while True:
            rows = self.db.get_unembedded_exchanges(limit=batch_size)
            if not rows:
                break

            embeddings = self.embedder.embed_texts([exchange_text(r.to_exchange()) for r in rows])
            updated = []
            for row, embedding in zip(rows, embeddings):
                if embedding is None:
                    continue
                row.embedding = EmbeddingGenerator.serialize_embedding(embedding)
                row.embedding_model = self.embedder.model
                updated.append(row)

            if not updated:
                # The API refused this batch; stop rather than loop on it
                break
            self.db.upsert_exchanges(updated)
            created += len(updated)

        return created
