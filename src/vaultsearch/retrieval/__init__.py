"""Hybrid retrieval of note passages: explicit note links plus vector search."""

from .errors import EmbeddingError, IndexSearchError, RetrievalError, RetrievalTimeout
from .hybrid import HybridRetriever, RetrievalTrace, build_retriever
from .merge import DedupeKey, ExplicitFirstMergePolicy, MergePolicy
from .models import IndexedPassage, RetrievalOptions, RetrievedPassage, SearchHit
from .rewriter import HYDE_PROMPT_TEMPLATE, QueryRewriter
from .titles import extract_note_titles

__all__ = [
    "HybridRetriever",
    "RetrievalTrace",
    "build_retriever",
    "IndexedPassage",
    "RetrievedPassage",
    "SearchHit",
    "RetrievalOptions",
    "MergePolicy",
    "ExplicitFirstMergePolicy",
    "DedupeKey",
    "QueryRewriter",
    "HYDE_PROMPT_TEMPLATE",
    "extract_note_titles",
    "RetrievalError",
    "EmbeddingError",
    "IndexSearchError",
    "RetrievalTimeout",
]
