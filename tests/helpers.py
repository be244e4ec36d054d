"""Stub collaborators shared by the retrieval tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from vaultsearch.retrieval.models import IndexedPassage


def make_passage(
    passage_id: str,
    content: str,
    path: str = "notes/Misc.md",
    embedding: Optional[List[float]] = None,
    **extra: Any,
) -> IndexedPassage:
    return IndexedPassage(
        id=passage_id,
        content=content,
        path=path,
        title=path.rsplit("/", 1)[-1].removesuffix(".md"),
        embedding=embedding if embedding is not None else [0.1, 0.2],
        embedding_model="stub-embedder",
        extension="md",
        **extra,
    )


def raw_hit(passage_id: str, content: str, path: str = "notes/Misc.md", score: Optional[float] = None) -> Dict[str, Any]:
    """An Orama-style loosely typed hit."""

    return {
        "id": passage_id,
        "score": score,
        "document": {
            "id": passage_id,
            "content": content,
            "path": path,
            "title": path.rsplit("/", 1)[-1].removesuffix(".md"),
            "embeddingModel": "stub-embedder",
            "tags": ["#project"],
            "extension": "md",
            "created_at": 1_700_000_000,
            "nchars": len(content),
            "mtime": 1_700_000_000_000,
            "ctime": 1_699_000_000_000,
        },
    }


@dataclass
class StubResolver:
    paths: Dict[str, str] = field(default_factory=dict)
    failing: Sequence[str] = ()
    calls: List[str] = field(default_factory=list)

    def resolve_title(self, title: str) -> Optional[str]:
        self.calls.append(title)
        if title in self.failing:
            raise OSError(f"vault unavailable for {title}")
        return self.paths.get(title)


@dataclass
class StubIndex:
    by_path: Dict[str, List[Any]] = field(default_factory=dict)
    hits: List[Any] = field(default_factory=list)
    failing_paths: Sequence[str] = ()
    search_error: Optional[Exception] = None
    fetch_calls: List[str] = field(default_factory=list)
    search_calls: List[Dict[str, Any]] = field(default_factory=list)

    def fetch_by_path(self, path: str) -> List[Any]:
        self.fetch_calls.append(path)
        if path in self.failing_paths:
            raise ConnectionError(f"index read failed for {path}")
        return list(self.by_path.get(path, []))

    def vector_search(self, vector: Sequence[float], *, min_score: float, limit: int) -> List[Any]:
        self.search_calls.append({"vector": list(vector), "min_score": min_score, "limit": limit})
        if self.search_error is not None:
            raise self.search_error
        return list(self.hits)


@dataclass
class EchoEmbedder:
    """Records every text it embeds; the vector encodes nothing useful."""

    texts: List[str] = field(default_factory=list)

    def embed_query(self, text: str) -> List[float]:
        self.texts.append(text)
        return [1.0, 0.0]


@dataclass
class FailingEmbedder:
    error: Exception = field(default_factory=lambda: RuntimeError("embedding model unreachable"))

    def embed_query(self, text: str) -> List[float]:
        raise self.error


@dataclass
class StubResponse:
    content: str


@dataclass
class StubLLM:
    response: Any = field(default_factory=lambda: StubResponse("A hypothetical passage about deadlines."))
    error: Optional[Exception] = None
    prompts: List[str] = field(default_factory=list)

    def invoke(self, prompt: str) -> Any:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response
