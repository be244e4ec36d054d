"""Query embedding for vault-search."""

from .embedder import EmbeddingClient, EmbeddingUnavailableError

__all__ = [
    "EmbeddingClient",
    "EmbeddingUnavailableError",
]
