"""Interfaces the retrieval core consumes from its collaborators."""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class TitleResolver(Protocol):
    """Maps a note title to its document path, or None when no note matches."""

    def resolve_title(self, title: str) -> Optional[str]: ...


@runtime_checkable
class VectorIndex(Protocol):
    """Read side of the passage index."""

    def fetch_by_path(self, path: str) -> Sequence[Any]: ...

    def vector_search(
        self,
        vector: Sequence[float],
        *,
        min_score: float,
        limit: int,
    ) -> Sequence[Any]: ...


@runtime_checkable
class Embedder(Protocol):
    def embed_query(self, text: str) -> Sequence[float]: ...


@runtime_checkable
class LanguageModel(Protocol):
    """Chat model used for query rewriting; responses expose ``content``."""

    def invoke(self, prompt: str) -> Any: ...
