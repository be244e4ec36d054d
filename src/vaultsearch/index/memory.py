"""In-process passage index for local runs and tests."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Iterable, List, Optional, Sequence

import numpy as np

from vaultsearch.retrieval.models import IndexedPassage, SearchHit

logger = logging.getLogger(__name__)


class InMemoryVectorIndex:
    """Cosine-similarity search over passages held in memory."""

    def __init__(self, passages: Optional[Iterable[IndexedPassage]] = None) -> None:
        self._lock = Lock()
        self._passages: List[IndexedPassage] = []
        self._matrix: Optional[np.ndarray] = None
        self._dimensions: Optional[int] = None
        if passages is not None:
            self.add(passages)

    def __len__(self) -> int:
        return len(self._passages)

    def add(self, passages: Iterable[IndexedPassage]) -> None:
        """Add passages; every embedding must share one dimensionality."""

        with self._lock:
            batch = list(passages)
            known_ids = {passage.id for passage in self._passages}
            for passage in batch:
                if not passage.embedding:
                    raise ValueError(f"Passage {passage.id} has no embedding")
                if self._dimensions is None:
                    self._dimensions = len(passage.embedding)
                elif len(passage.embedding) != self._dimensions:
                    raise ValueError(
                        f"Passage {passage.id} has {len(passage.embedding)} dimensions, "
                        f"index expects {self._dimensions}"
                    )
                if passage.id in known_ids:
                    raise ValueError(f"Duplicate passage id: {passage.id}")
                known_ids.add(passage.id)
            self._passages.extend(batch)
            self._matrix = None
            logger.debug("Indexed %d passages (%d total)", len(batch), len(self._passages))

    def fetch_by_path(self, path: str) -> List[SearchHit]:
        return [SearchHit(passage=passage) for passage in self._passages if passage.path == path]

    def vector_search(
        self,
        vector: Sequence[float],
        *,
        min_score: float,
        limit: int,
    ) -> List[SearchHit]:
        if limit <= 0:
            raise ValueError("Limit must be positive")
        if not self._passages:
            return []

        query = np.asarray(vector, dtype=np.float32)
        if query.shape != (self._dimensions,):
            raise ValueError(f"Query has {query.shape[0]} dimensions, index expects {self._dimensions}")

        scores = self._normalized_matrix() @ _normalize(query)
        ranked = np.argsort(-scores, kind="stable")

        hits: List[SearchHit] = []
        for position in ranked:
            score = float(scores[position])
            if score < min_score:
                break
            hits.append(SearchHit(passage=self._passages[position], score=score))
            if len(hits) >= limit:
                break
        return hits

    def _normalized_matrix(self) -> np.ndarray:
        with self._lock:
            if self._matrix is None:
                matrix = np.asarray([passage.embedding for passage in self._passages], dtype=np.float32)
                norms = np.linalg.norm(matrix, axis=1, keepdims=True)
                norms[norms == 0] = 1.0
                self._matrix = matrix / norms
            return self._matrix


def _normalize(vector: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector
    return vector / norm
