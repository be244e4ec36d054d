"""Passage index adapters."""

from .memory import InMemoryVectorIndex
from .pgvector import PgVectorIndex

__all__ = ["InMemoryVectorIndex", "PgVectorIndex"]
