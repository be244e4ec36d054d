"""Sentence-transformer query embedder with lazy initialization."""

from __future__ import annotations

import logging
from threading import Lock
from typing import List, Optional

from vaultsearch.config import settings

logger = logging.getLogger(__name__)


class EmbeddingUnavailableError(RuntimeError):
    """Raised when the embedding model cannot be loaded or fails to encode."""


class EmbeddingClient:
    """Thin wrapper around sentence-transformers for query embedding."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        normalize: Optional[bool] = None,
    ) -> None:
        self.model_name = model_name or settings.embedder_model
        self.device = device or settings.embedder_device
        self.normalize = settings.embedder_normalize if normalize is None else normalize
        self._lock = Lock()
        self._model = None

    @property
    def available(self) -> bool:
        return self._model is not False

    def _load_model(self):
        if self._model is False:
            return None

        if self._model is not None:
            return self._model

        with self._lock:
            if self._model not in (None, False):
                return self._model

            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model '%s' on device '%s'", self.model_name, self.device)
            try:
                self._model = SentenceTransformer(self.model_name, device=self.device)
            except Exception as exc:  # pragma: no cover - depends on local hardware
                if self.device == "cpu":
                    logger.warning("Failed to load embedder '%s': %s", self.model_name, exc)
                    self._model = False
                    return None

                logger.warning("Embedder device '%s' unavailable (%s); retrying on CPU", self.device, exc)
                try:
                    self.device = "cpu"
                    self._model = SentenceTransformer(self.model_name, device=self.device)
                except Exception as cpu_exc:  # pragma: no cover - depends on local hardware
                    logger.warning("Failed to load embedder '%s' on CPU: %s", self.model_name, cpu_exc)
                    self._model = False
                    return None

        return self._model

    def embed_query(self, text: str) -> List[float]:
        """Embed one query string.

        Raises:
            EmbeddingUnavailableError: the model is missing or encoding failed.
        """

        if not text or not text.strip():
            raise EmbeddingUnavailableError("Cannot embed an empty query")

        model = self._load_model()
        if model is None:
            raise EmbeddingUnavailableError(f"Embedding model '{self.model_name}' is unavailable")

        try:
            embedding = model.encode(
                text,
                normalize_embeddings=self.normalize,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as exc:
            logger.error("Embedding model failed to encode query: %s", exc)
            raise EmbeddingUnavailableError(str(exc)) from exc

        # model.encode returns numpy.ndarray when convert_to_numpy=True
        if hasattr(embedding, "tolist"):
            return [float(value) for value in embedding.tolist()]
        return [float(value) for value in embedding]
