"""Passages pulled in because the query names their note."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from vaultsearch.retrieval.models import RetrievedPassage, SearchHit
from vaultsearch.retrieval.protocols import TitleResolver, VectorIndex

logger = logging.getLogger(__name__)


class ExplicitChunkFetcher:
    """Fetch every indexed passage of each note named in the query.

    Explicit passages are neither score-filtered nor count-limited here. A
    title that does not resolve, or whose lookup fails, contributes nothing.
    """

    def __init__(self, resolver: TitleResolver, index: VectorIndex) -> None:
        self._resolver = resolver
        self._index = index

    async def fetch(self, titles: Sequence[str]) -> List[RetrievedPassage]:
        if not titles:
            return []

        per_title = await asyncio.gather(*(self._fetch_title(title) for title in titles))

        passages: List[RetrievedPassage] = []
        for chunk in per_title:
            passages.extend(chunk)
        return passages

    async def _fetch_title(self, title: str) -> List[RetrievedPassage]:
        try:
            path = await asyncio.to_thread(self._resolver.resolve_title, title)
            if not path:
                logger.debug("Note title %r did not resolve to a file", title)
                return []

            hits = await asyncio.to_thread(self._index.fetch_by_path, path)
            return [RetrievedPassage.from_hit(SearchHit.from_raw(hit), "explicit") for hit in hits or ()]
        except Exception as exc:
            logger.warning("Failed to fetch passages for note %r: %s", title, exc)
            return []
