"""Errors raised by the retrieval pipeline."""

from __future__ import annotations

from typing import Optional


class RetrievalError(RuntimeError):
    """Raised when a retrieval call cannot produce a complete result."""


class EmbeddingError(RetrievalError):
    """The query could not be embedded, so no similarity search is possible."""

    def __init__(self, query: str, cause: Optional[BaseException] = None) -> None:
        self.query = query
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to embed query {query!r}{detail}")


class IndexSearchError(RetrievalError):
    """The vector index failed to answer a similarity search."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


class RetrievalTimeout(RetrievalError):
    """The retrieval call exceeded its deadline."""
