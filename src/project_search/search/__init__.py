"""Search helpers for the project corpus."""

from .ranker import RankedProject, cosine_similarity, rank_by_similarity
from .service import SearchHit, SearchResult, SearchService

__all__ = [
    "RankedProject",
    "cosine_similarity",
    "rank_by_similarity",
    "SearchHit",
    "SearchResult",
    "SearchService",
]
