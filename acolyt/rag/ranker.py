"""
Similarity ranker: cosine similarity over the in-memory chunk set.

A linear scan costs O(N*D) per query, which is fine for a notes file of a few
hundred chunks. Past low thousands of chunks this needs a vector index.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

from .chunk_store import KnowledgeChunk


@dataclass(frozen=True)
class RankedMatch:
    content: str
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors, 0.0 if either has zero norm.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank(query: Sequence[float], chunks: Sequence[KnowledgeChunk], top_k: int) -> List[RankedMatch]:
    """Score every chunk against the query and return the best ``top_k``.

    Ties keep insertion order (sorted() is stable).
    """
    if top_k <= 0 or not chunks:
        return []

    scored = [RankedMatch(content=c.content, score=cosine_similarity(query, c.embedding)) for c in chunks]
    scored.sort(key=lambda m: m.score, reverse=True)
    return scored[:top_k]
