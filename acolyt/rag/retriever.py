"""
Retriever module for selecting relevant note context at query time.

Embeds the user message, ranks the current chunk snapshot by cosine
similarity and assembles the top-K chunk contents into a bounded context
block ready for the context system message.
"""

import logging
from typing import Iterable, List

from .. import config
from ..errors import EmbeddingError
from .chunk_store import KnowledgeStore
from .embedder import EmbeddingClient
from .ranker import RankedMatch, rank

logger = logging.getLogger(__name__)

NO_CONTEXT = "No relevant notes found."
SEPARATOR = "\n\n"


def assemble(matches: Iterable[str], max_chars: int = None, separator: str = SEPARATOR) -> str:
    """Join match contents into one context block bounded by ``max_chars``.

    Matches are added in order until the next one would overflow the budget.
    A first match that alone exceeds the budget is cut to fit.

    Returns:
        The context block, or NO_CONTEXT when there is nothing to include.
    """
    max_chars = config.CONTEXT_MAX_CHARS if max_chars is None else max_chars
    if max_chars <= 0:
        return NO_CONTEXT

    parts: List[str] = []
    total_chars = 0
    for content in matches:
        content = content.strip()
        if not content:
            continue

        extra = len(content) + (len(separator) if parts else 0)
        if total_chars + extra > max_chars:
            if not parts:
                parts.append(content[:max_chars])
            logger.info(
                f"[RETRIEVER] Reached char limit ({max_chars}), "
                f"stopping at {len(parts)} chunks"
            )
            break

        parts.append(content)
        total_chars += extra

    if not parts:
        return NO_CONTEXT
    return separator.join(parts)


class Retriever:
    """Relevant-context selector over an injected Knowledge Store."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedder: EmbeddingClient,
        top_k: int = None,
        max_chars: int = None,
    ):
        self.store = store
        self.embedder = embedder
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.max_chars = config.CONTEXT_MAX_CHARS if max_chars is None else max_chars
        if self.max_chars < 1:
            raise ValueError("max_chars must be at least 1")

    async def matches(self, query: str) -> List[RankedMatch]:
        """Top-K matches for the query.

        Raises:
            EmbeddingError: If the query could not be embedded.
        """
        chunks = self.store.snapshot()
        if not chunks:
            return []

        query_embedding = await self.embedder.embed(query)
        return rank(query_embedding, chunks, self.top_k)

    async def retrieve(self, query: str) -> str:
        """Context block for the query. Never raises for retrieval failures."""
        try:
            results = await self.matches(query)
        except EmbeddingError as e:
            logger.warning(f"[RETRIEVER] Embedding failed, answering without context: {e}")
            return NO_CONTEXT
        except ValueError as e:
            # Query and stored vectors come from different embedding models
            logger.error(f"[RETRIEVER] Cannot rank query against stored chunks: {e}")
            return NO_CONTEXT

        if not results:
            logger.info("[RETRIEVER] No chunks retrieved for query")
            return NO_CONTEXT

        logger.info(
            f"[RETRIEVER] Retrieved {len(results)} chunks "
            f"(scores: {', '.join(f'{r.score:.2f}' for r in results)}) "
            f"for query: {query[:80]}..."
        )
        return assemble((r.content for r in results), max_chars=self.max_chars)
