"""
Similarity ranking over stored project embeddings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(frozen=True)
class RankedProject:
    """A project id with its cosine score against the query."""

    project_id: int
    score: float


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors have different dimensions
    """
    if len(vec_a) != len(vec_b):
        raise ValueError(f"Vector dimensions must match: {len(vec_a)} != {len(vec_b)}")

    dot_product = math.fsum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(math.fsum(a * a for a in vec_a))
    magnitude_b = math.sqrt(math.fsum(b * b for b in vec_b))
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    score = dot_product / (magnitude_a * magnitude_b)
    # Rounding can push parallel vectors a hair past +/-1.
    return max(-1.0, min(1.0, score))


def rank_by_similarity(
    query_embedding: Sequence[float],
    candidates: Iterable[tuple[int, Sequence[float]]],
    *,
    limit: int | None = None,
) -> list[RankedProject]:
    """Score every candidate and sort by descending score, then ascending id."""
    scored = [
        RankedProject(project_id=project_id, score=cosine_similarity(query_embedding, vector))
        for project_id, vector in candidates
    ]
    ordered = sorted(scored, key=lambda ranked: (-ranked.score, ranked.project_id))
    if limit is not None:
        return ordered[: max(limit, 0)]
    return ordered
