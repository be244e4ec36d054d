"""Policies for combining explicit and vector passages into one result."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Hashable, List, Protocol, Sequence, runtime_checkable

from vaultsearch.retrieval.models import RetrievedPassage

logger = logging.getLogger(__name__)


class DedupeKey(str, Enum):
    """What makes two passages the same passage."""

    CONTENT = "content"
    PATH_AND_CONTENT = "path_and_content"

    def key_for(self, passage: RetrievedPassage) -> Hashable:
        if self is DedupeKey.PATH_AND_CONTENT:
            return (passage.path, passage.content)
        return passage.content


@runtime_checkable
class MergePolicy(Protocol):
    def merge(
        self,
        explicit: Sequence[RetrievedPassage],
        vector: Sequence[RetrievedPassage],
        max_k: int,
    ) -> List[RetrievedPassage]: ...


class ExplicitFirstMergePolicy:
    """Notes the user named outrank similarity hits.

    Every explicit passage is kept, in fetch order, even when two share a
    key. Vector passages follow in rank order, skipping any whose key an
    explicit or earlier vector passage already has. The tail past ``max_k``
    is dropped.
    """

    def __init__(self, dedupe_key: DedupeKey = DedupeKey.CONTENT) -> None:
        self.dedupe_key = DedupeKey(dedupe_key)

    def merge(
        self,
        explicit: Sequence[RetrievedPassage],
        vector: Sequence[RetrievedPassage],
        max_k: int,
    ) -> List[RetrievedPassage]:
        seen: set[Hashable] = {self.dedupe_key.key_for(passage) for passage in explicit}
        combined: List[RetrievedPassage] = list(explicit)

        for passage in vector:
            key = self.dedupe_key.key_for(passage)
            if key in seen:
                continue
            seen.add(key)
            combined.append(passage)

        if len(combined) > max_k:
            logger.debug("Truncating %s merged passages to %s", len(combined), max_k)
        return combined[:max_k]
