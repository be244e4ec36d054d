"""Hybrid retrieval: named notes first, then vector similarity hits.

One call runs title extraction, fetches the passages of every note named
with ``[[Title]]``, optionally rewrites the query into a hypothetical answer
(HyDE), embeds it for a similarity search and merges both lists under the
``max_k`` budget. Explicit fetching and rewriting do not depend on each
other and run concurrently; the vector search waits for the rewrite.

The retriever keeps no per-call state, so one instance can serve concurrent
calls as long as its collaborators allow concurrent reads.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from vaultsearch.config import Settings, settings
from vaultsearch.db import DatabaseManager, db
from vaultsearch.embedding.embedder import EmbeddingClient
from vaultsearch.index.pgvector import PgVectorIndex
from vaultsearch.llm.text_client import TextLLMClient
from vaultsearch.retrieval.errors import RetrievalTimeout
from vaultsearch.retrieval.explicit import ExplicitChunkFetcher
from vaultsearch.retrieval.merge import DedupeKey, ExplicitFirstMergePolicy, MergePolicy
from vaultsearch.retrieval.models import RetrievalOptions, RetrievedPassage
from vaultsearch.retrieval.protocols import Embedder, LanguageModel, TitleResolver, VectorIndex
from vaultsearch.retrieval.rewriter import QueryRewriter
from vaultsearch.retrieval.titles import extract_note_titles
from vaultsearch.retrieval.vector import VectorRetriever
from vaultsearch.vault.catalog import VaultCatalog

logger = logging.getLogger(__name__)


@dataclass
class RetrievalTrace:
    """Intermediate values of one retrieval call, emitted in debug mode."""

    query: str
    note_titles: List[str]
    rewritten_query: Optional[str]
    explicit: List[RetrievedPassage] = field(default_factory=list)
    vector: List[RetrievedPassage] = field(default_factory=list)
    combined: List[RetrievedPassage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "note_titles": list(self.note_titles),
            "rewritten_query": self.rewritten_query,
            "explicit": [passage.to_dict() for passage in self.explicit],
            "vector": [passage.to_dict() for passage in self.vector],
            "combined": [passage.to_dict() for passage in self.combined],
        }


def _log_trace(trace: RetrievalTrace) -> None:
    logger.info("Hybrid retriever trace:\n%s", json.dumps(trace.to_dict(), indent=2, default=str))


class HybridRetriever:
    """Retrieve grounding passages for a question about the vault."""

    def __init__(
        self,
        *,
        resolver: TitleResolver,
        index: VectorIndex,
        embedder: Embedder,
        options: RetrievalOptions,
        llm: Optional[LanguageModel] = None,
        merge_policy: Optional[MergePolicy] = None,
        use_hyde: bool = True,
        timeout: Optional[float] = None,
        debug: bool = False,
        trace_sink: Optional[Callable[[RetrievalTrace], None]] = None,
    ) -> None:
        self.options = options
        self.use_hyde = use_hyde and llm is not None
        self.timeout = timeout
        self.debug = debug
        self._explicit = ExplicitChunkFetcher(resolver, index)
        self._rewriter = QueryRewriter(llm) if llm is not None else None
        self._vector = VectorRetriever(embedder, index, options)
        self._merge_policy = merge_policy or ExplicitFirstMergePolicy()
        self._trace_sink = trace_sink or _log_trace

    async def retrieve(
        self,
        query: str,
        *,
        bypass_rewrite: bool = False,
        timeout: Optional[float] = None,
    ) -> List[RetrievedPassage]:
        """Return at most ``max_k`` passages for ``query``, named notes first.

        Raises:
            EmbeddingError: the query could not be embedded.
            IndexSearchError: the similarity search failed.
            RetrievalTimeout: the call ran past its deadline.
        """

        deadline = timeout if timeout is not None else self.timeout
        if deadline is None:
            return await self._retrieve(query, bypass_rewrite)

        try:
            return await asyncio.wait_for(self._retrieve(query, bypass_rewrite), timeout=deadline)
        except asyncio.TimeoutError as exc:
            logger.error("Retrieval exceeded %ss deadline (query=%r)", deadline, query)
            raise RetrievalTimeout(f"Retrieval exceeded {deadline}s deadline") from exc

    def retrieve_sync(
        self,
        query: str,
        *,
        bypass_rewrite: bool = False,
        timeout: Optional[float] = None,
    ) -> List[RetrievedPassage]:
        """Blocking wrapper for callers without an event loop.

        Unlike ``asyncio.run``, closing the private loop does not join the
        executor, so a collaborator call stuck past the deadline is left
        running in its worker thread instead of holding up the caller.
        """

        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(self.retrieve(query, bypass_rewrite=bypass_rewrite, timeout=timeout))
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                loop.close()

    async def _retrieve(self, query: str, bypass_rewrite: bool) -> List[RetrievedPassage]:
        note_titles = extract_note_titles(query)
        rewrite = self._rewriter is not None and self.use_hyde and not bypass_rewrite

        if rewrite:
            explicit, search_query = await asyncio.gather(
                self._explicit.fetch(note_titles),
                self._rewriter.rewrite(query),
            )
        else:
            explicit = await self._explicit.fetch(note_titles)
            search_query = query

        vector = await self._vector.search(search_query)
        combined = self._merge_policy.merge(explicit, vector, self.options.max_k)

        logger.debug(
            "Retrieved %s passages (%s explicit, %s vector) for %s note titles",
            len(combined),
            len(explicit),
            len(vector),
            len(note_titles),
        )

        if self.debug:
            self._trace_sink(
                RetrievalTrace(
                    query=query,
                    note_titles=note_titles,
                    rewritten_query=search_query if rewrite else None,
                    explicit=list(explicit),
                    vector=list(vector),
                    combined=list(combined),
                )
            )
        return combined


def build_retriever(
    config: Optional[Settings] = None,
    *,
    debug: Optional[bool] = None,
    use_hyde: Optional[bool] = None,
    options: Optional[RetrievalOptions] = None,
) -> HybridRetriever:
    """Wire the default vault, pgvector, sentence-transformers and Ollama adapters."""

    config = config or settings
    manager = db if config is settings else DatabaseManager(config.database_url)

    return HybridRetriever(
        resolver=VaultCatalog(config.vault_path),
        index=PgVectorIndex(table=config.passages_table, connection_factory=manager.get_connection),
        embedder=EmbeddingClient(
            model_name=config.embedder_model,
            device=config.embedder_device,
            normalize=config.embedder_normalize,
        ),
        llm=TextLLMClient(
            host=config.ollama_base,
            model=config.text_llm_model,
            temperature=config.rewrite_temperature,
            max_tokens=config.rewrite_max_tokens,
        ),
        options=options or RetrievalOptions.from_settings(config),
        merge_policy=ExplicitFirstMergePolicy(DedupeKey(config.dedupe_key)),
        use_hyde=config.use_hyde if use_hyde is None else use_hyde,
        timeout=config.retrieval_timeout,
        debug=config.retrieval_debug if debug is None else debug,
    )
