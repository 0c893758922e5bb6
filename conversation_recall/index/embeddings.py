"""OpenAI embedding generation for semantic search."""

import logging
import os
import struct
from typing import TYPE_CHECKING, Mapping, Optional, Union

logger = logging.getLogger(__name__)

import importlib.util

HAS_OPENAI = importlib.util.find_spec("openai") is not None

if TYPE_CHECKING:
    from openai import OpenAI as OpenAIType

EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536
BATCH_SIZE = 100


class EmbeddingGenerator:
    """Generates embeddings for exchanges and queries using the OpenAI API."""

    model = EMBEDDING_MODEL

    def __init__(self, api_key: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        self._client: Optional["OpenAIType"] = None
        self._available = False
        self._initialize_client(api_key, os.environ if environ is None else environ)

    def _initialize_client(self, api_key: Optional[str], environ: Mapping[str, str]):
        if not HAS_OPENAI:
            logger.debug("OpenAI package not installed - embeddings disabled")
            return

        api_key = api_key or environ.get("OPENAI_API_KEY")
        if not api_key:
            logger.debug("OPENAI_API_KEY not set - embeddings disabled")
            return

        try:
            from openai import OpenAI
            self._client = OpenAI(api_key=api_key)
            self._available = True
            logger.debug("OpenAI embeddings initialized")
        except Exception as e:
            logger.warning(f"Failed to initialize OpenAI client: {e}")

    @property
    def available(self) -> bool:
        return self._available

    @staticmethod
    def serialize_embedding(embedding: list[float]) -> bytes:
        return struct.pack(f'{len(embedding)}f', *embedding)

    @staticmethod
    def deserialize_embedding(blob: bytes) -> list[float]:
        float_count = len(blob) // 4
        return list(struct.unpack(f'{float_count}f', blob))

    def embed_texts(self, texts: list[str]) -> list[Union[list[float], None]]:
        if not self._available or not texts or self._client is None:
            return [None for _ in texts]

        # Stay under the model's 8191-token context
        MAX_CHARS = 28000
        texts = [t[:MAX_CHARS] for t in texts]

        embeddings: list[Union[list[float], None]] = [None for _ in texts]
        for start in range(0, len(texts), BATCH_SIZE):
            batch = texts[start:start + BATCH_SIZE]
            try:
                response = self._client.embeddings.create(
                    model=EMBEDDING_MODEL,
                    input=batch,
                )
            except Exception as e:
                logger.error(f"Embedding API error: {e}")
                continue

            for item in response.data:
                embeddings[start + item.index] = item.embedding

        return embeddings

    def embed_query(self, query: str) -> Optional[list[float]]:
        if not self._available or not query or self._client is None:
            return None

        try:
            response = self._client.embeddings.create(
                model=EMBEDDING_MODEL,
                input=[query],
            )
            return response.data[0].embedding

        except Exception as e:
            logger.error(f"Query embedding error: {e}")
            return None
