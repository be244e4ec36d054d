"""Vector similarity search over the passage index."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from vaultsearch.retrieval.errors import EmbeddingError, IndexSearchError
from vaultsearch.retrieval.models import RetrievalOptions, RetrievedPassage, SearchHit
from vaultsearch.retrieval.protocols import Embedder, VectorIndex

logger = logging.getLogger(__name__)


class VectorRetriever:
    """Embed a query and return the index's ranked hits above the threshold."""

    def __init__(self, embedder: Embedder, index: VectorIndex, options: RetrievalOptions) -> None:
        self._embedder = embedder
        self._index = index
        self._options = options

    async def search(self, query: str) -> List[RetrievedPassage]:
        vector = await self._embed(query)

        try:
            hits = await asyncio.to_thread(
                self._index.vector_search,
                vector,
                min_score=self._options.min_similarity_score,
                limit=self._options.max_k,
            )
        except Exception as exc:
            logger.error("Vector search failed: %s", exc)
            raise IndexSearchError(f"Vector search failed: {exc}", cause=exc) from exc

        try:
            validated = [SearchHit.from_raw(hit) for hit in hits or ()]
        except Exception as exc:
            raise IndexSearchError(f"Vector index returned a malformed hit: {exc}", cause=exc) from exc

        results: List[RetrievedPassage] = []
        for hit in validated:
            if hit.score is None or hit.score < self._options.min_similarity_score:
                logger.debug("Dropping hit %s below similarity threshold (score=%s)", hit.passage.id, hit.score)
                continue
            results.append(RetrievedPassage.from_hit(hit, "vector"))
        return results

    async def _embed(self, query: str) -> Sequence[float]:
        try:
            vector = await asyncio.to_thread(self._embedder.embed_query, query)
        except Exception as exc:
            logger.error(
                "Error embedding query, please ensure your embedding model is working "
                "and has an adequate context length: %s (query=%r)",
                exc,
                query,
            )
            raise EmbeddingError(query, exc) from exc

        if vector is None or len(vector) == 0:
            logger.error("Embedding model returned an empty vector (query=%r)", query)
            raise EmbeddingError(query)
        return vector
