"""
HyDE (Hypothetical Document Embeddings) query rewriting.

The query is replaced by a passage the language model writes as if it were
answering the question. That passage embeds closer to real note passages than
a short question does. Rewriting is best effort: any model failure falls back
to the original query.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional

from vaultsearch.retrieval.protocols import LanguageModel

logger = logging.getLogger(__name__)

HYDE_PROMPT_TEMPLATE = (
    "Please write a passage to answer the question. If you don't know the answer, "
    "just make up a passage. \nQuestion: {question}\nPassage:"
)


class QueryRewriter:
    """Turn a question into a hypothetical answer passage."""

    def __init__(self, llm: LanguageModel, prompt_template: str = HYDE_PROMPT_TEMPLATE) -> None:
        self._llm = llm
        self._prompt_template = prompt_template

    def build_prompt(self, query: str) -> str:
        return self._prompt_template.format(question=query)

    async def rewrite(self, query: str) -> str:
        """Return the hypothetical passage, or ``query`` unchanged on any failure."""

        try:
            response = await asyncio.to_thread(self._llm.invoke, self.build_prompt(query))
        except Exception as exc:
            logger.error("Query rewrite failed; using original query: %s", exc)
            return query

        content = _response_content(response)
        if content is None:
            logger.warning("Unexpected rewrite response format. Falling back to original query.")
            return query

        logger.debug("Rewrote query into %s-character hypothetical passage", len(content))
        return content


def _response_content(response: Any) -> Optional[str]:
    """Pull the text out of a chat response.

    Accepts objects with a ``content`` attribute, mappings with a ``content``
    key, and Ollama-style ``{"message": {"content": ...}}`` payloads.
    """

    if response is None:
        return None

    if isinstance(response, Mapping):
        content = response.get("content")
        if content is None:
            message = response.get("message")
            if isinstance(message, Mapping):
                content = message.get("content")
            else:
                content = getattr(message, "content", None)
    else:
        content = getattr(response, "content", None)

    if not isinstance(content, str) or not content.strip():
        return None
    return content
