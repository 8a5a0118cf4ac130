"""
Semantic and keyword search over the project store.

Embeds a query and ranks stored project embeddings by cosine similarity,
falling back to keyword matching when the embedding provider is missing,
failing, or past its deadline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from ..embeddings import EmbeddingBackend, embed_with_timeout
from ..errors import EmptyQueryError, ProviderUnavailableError
from ..storage import Project
from ..store import ProjectStore
from .ranker import rank_by_similarity

logger = logging.getLogger(__name__)

MatchedBy = Literal["semantic", "keyword"]


@dataclass(frozen=True)
class SearchHit:
    """A matched project. Keyword matches carry no score."""

    project: Project
    score: float | None = None


@dataclass(frozen=True)
class SearchResult:
    """Search output; the shape is the same for both search paths."""

    query: str
    matched_by: MatchedBy
    hits: tuple[SearchHit, ...]
    fallback_reason: str | None = None

    @property
    def projects(self) -> list[Project]:
        return [hit.project for hit in self.hits]


class SearchService:
    """Stateless orchestration of query embedding, ranking, and fallback."""

    def __init__(
        self,
        store: ProjectStore,
        embedding_provider: EmbeddingBackend | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.timeout = timeout

    def search_semantic(
        self,
        query: str,
        *,
        timeout: float | None = None,
        limit: int | None = None,
    ) -> SearchResult:
        """Return projects ordered by similarity to *query*.

        *timeout* overrides the service default deadline for the provider
        call. When the call cannot complete, keyword results are returned
        with matched_by="keyword".
        """
        text = self._require_text(query)
        try:
            query_embedding = self._embed_query(text, timeout=timeout)
        except ProviderUnavailableError as exc:
            logger.warning("Semantic search falling back to keyword: %s", exc)
            return self._keyword_result(text, limit=limit, fallback_reason=str(exc))

        candidates = self._comparable(query_embedding, self.store.list_all_with_embeddings())
        ranked = rank_by_similarity(query_embedding, candidates, limit=limit)
        projects = self.store.get_projects(ranked_project.project_id for ranked_project in ranked)
        # Projects deleted between listing and resolving are dropped.
        hits = tuple(
            SearchHit(project=projects[ranked_project.project_id], score=ranked_project.score)
            for ranked_project in ranked
            if ranked_project.project_id in projects
        )
        logger.debug("Ranked %d of %d candidates for %r", len(hits), len(candidates), text)
        return SearchResult(query=text, matched_by="semantic", hits=hits)

    def search_keyword(self, keyword: str) -> list[Project]:
        return self.store.get_projects_by_keyword(self._require_text(keyword))

    def _keyword_result(
        self,
        text: str,
        *,
        limit: int | None,
        fallback_reason: str | None,
    ) -> SearchResult:
        projects = self.search_keyword(text)
        if limit is not None:
            projects = projects[: max(limit, 0)]
        return SearchResult(
            query=text,
            matched_by="keyword",
            hits=tuple(SearchHit(project=project) for project in projects),
            fallback_reason=fallback_reason,
        )

    def _embed_query(self, text: str, *, timeout: float | None) -> tuple[float, ...]:
        if self.embedding_provider is None:
            raise ProviderUnavailableError("No embedding provider configured")
        return embed_with_timeout(
            self.embedding_provider.embed_query,
            text,
            timeout=timeout if timeout is not None else self.timeout,
            expected_dim=getattr(self.embedding_provider, "dim", None),
        )

    @staticmethod
    def _comparable(
        query_embedding: tuple[float, ...],
        candidates: list[tuple[int, tuple[float, ...]]],
    ) -> list[tuple[int, tuple[float, ...]]]:
        """Drop stored vectors written under a different embedding dimension."""
        dim = len(query_embedding)
        comparable = [(pid, vector) for pid, vector in candidates if len(vector) == dim]
        skipped = len(candidates) - len(comparable)
        if skipped:
            logger.warning(
                "Skipped %d stored embeddings whose dimension differs from %d",
                skipped,
                dim,
            )
        return comparable

    @staticmethod
    def _require_text(text: str) -> str:
        if not isinstance(text, str) or not text.strip():
            raise EmptyQueryError("Search text must not be empty")
        return text.strip()
