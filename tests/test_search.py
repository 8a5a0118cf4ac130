"""Tests for semantic ranking, keyword search, and provider fallback."""

from __future__ import annotations

import time

import pytest

from project_search.errors import EmptyQueryError
from project_search.search import SearchService
from project_search.store import ProjectStore

from conftest import FailingEmbedder, SlowEmbedder, StubEmbedder


def test_semantic_search_ranks_web_development_first(
    seeded_store: ProjectStore, search_service: SearchService
) -> None:
    result = search_service.search_semantic("web development")

    titles = [project.title for project in result.projects]
    assert result.matched_by == "semantic"
    assert len(titles) == 5
    assert titles[0] == "Web Development"
    assert titles == [
        "Web Development",
        "Java Project",
        "Python Automation",
        "Database Management",
        "Machine Learning",
    ]


def test_semantic_search_is_reproducible(
    seeded_store: ProjectStore, search_service: SearchService
) -> None:
    first = search_service.search_semantic("machine learning with python")
    second = search_service.search_semantic("machine learning with python")

    assert first == second
    assert first.projects[0].title == "Machine Learning"
    scores = [hit.score for hit in first.hits]
    assert scores == sorted(scores, reverse=True)


def test_semantic_search_applies_limit(
    seeded_store: ProjectStore, search_service: SearchService
) -> None:
    result = search_service.search_semantic("web development", limit=2)

    assert [p.title for p in result.projects] == ["Web Development", "Java Project"]


def test_semantic_search_reflects_description_edit(
    seeded_store: ProjectStore, search_service: SearchService
) -> None:
    java = seeded_store.get_projects_by_keyword("Java Project")[0]
    seeded_store.edit_project(
        java.id,
        "Updated Java Project",
        1100.0,
        "Java web development with HTML and CSS.",
        {"Java", "Programming", "Updated"},
        editor_id=7,
    )

    result = search_service.search_semantic("html css")

    assert result.projects[0].title == "Updated Java Project"
    assert len(result.projects) == 5


def test_semantic_search_skips_degraded_projects(
    store: ProjectStore, embedder: StubEmbedder
) -> None:
    store.create_project("Embedded", 1, "web development", [], owner_id=1)
    store.embedding_provider = FailingEmbedder()
    store.create_project("Degraded", 1, "web development", [], owner_id=1)
    service = SearchService(store, embedder)

    result = service.search_semantic("web development")

    assert [p.title for p in result.projects] == ["Embedded"]


def test_semantic_search_falls_back_when_provider_fails(seeded_store: ProjectStore) -> None:
    service = SearchService(seeded_store, FailingEmbedder())

    result = service.search_semantic("development")

    assert result.matched_by == "keyword"
    assert "quota exceeded" in (result.fallback_reason or "")
    assert {p.title for p in result.projects} == {"Java Project", "Web Development"}
    assert all(hit.score is None for hit in result.hits)


def test_semantic_search_falls_back_without_provider(seeded_store: ProjectStore) -> None:
    service = SearchService(seeded_store, None)

    result = service.search_semantic("python")

    assert result.matched_by == "keyword"
    assert [p.title for p in result.projects] == ["Python Automation"]


def test_semantic_search_falls_back_after_deadline(seeded_store: ProjectStore) -> None:
    service = SearchService(seeded_store, SlowEmbedder(delay=1.0))

    start = time.perf_counter()
    result = service.search_semantic("security", timeout=0.05)
    elapsed = time.perf_counter() - start

    assert elapsed < 0.8
    assert result.matched_by == "keyword"
    assert "timed out" in (result.fallback_reason or "")
    assert [p.title for p in result.projects] == ["Database Management"]


def test_semantic_search_uses_service_default_timeout(seeded_store: ProjectStore) -> None:
    service = SearchService(seeded_store, SlowEmbedder(delay=1.0), timeout=0.05)

    result = service.search_semantic("security")

    assert result.matched_by == "keyword"


def test_semantic_search_rejects_wrong_dimension_as_fallback(seeded_store: ProjectStore) -> None:
    embedder = StubEmbedder()
    embedder.dim = 3
    service = SearchService(seeded_store, embedder)

    result = service.search_semantic("java")

    assert result.matched_by == "keyword"
    assert "dimensions" in (result.fallback_reason or "")


class _ThreeDimEmbedder:
    """Provider configured for a smaller dimension than the stored vectors."""

    dim = 3

    def embed_query(self, query: str) -> list[float]:
        return [1.0, 0.0, 0.0]


def test_semantic_search_skips_vectors_of_another_dimension(
    seeded_store: ProjectStore,
) -> None:
    project = seeded_store.create_project("Re-embedded", 1, "new model", [], owner_id=7)
    seeded_store.storage.set_embedding(project.id, (0.5, 0.5, 0.0))
    service = SearchService(seeded_store, _ThreeDimEmbedder())

    result = service.search_semantic("java")

    assert result.matched_by == "semantic"
    assert [p.title for p in result.projects] == ["Re-embedded"]
    assert result.hits[0].score == pytest.approx(0.7071, abs=1e-4)


def test_semantic_search_with_only_mismatched_vectors_returns_no_hits(
    seeded_store: ProjectStore,
) -> None:
    service = SearchService(seeded_store, _ThreeDimEmbedder())

    result = service.search_semantic("java")

    assert result.matched_by == "semantic"
    assert result.hits == ()


def test_keyword_search_is_case_insensitive(
    seeded_store: ProjectStore, search_service: SearchService
) -> None:
    projects = search_service.search_keyword("java")

    assert [p.title for p in projects] == ["Java Project", "Web Development"]


def test_keyword_search_matches_each_field_once(
    seeded_store: ProjectStore, search_service: SearchService
) -> None:
    by_tag = search_service.search_keyword("data science")
    by_everything = search_service.search_keyword("DATABASE")

    assert [p.title for p in by_tag] == ["Machine Learning"]
    assert [p.title for p in by_everything] == ["Database Management"]


def test_keyword_search_treats_wildcards_literally(
    store: ProjectStore, search_service: SearchService
) -> None:
    store.create_project("100% remote", 1, "", [], owner_id=1)
    store.create_project("Fully remote", 1, "", [], owner_id=1)

    assert [p.title for p in search_service.search_keyword("100%")] == ["100% remote"]
    assert search_service.search_keyword("_") == []


@pytest.mark.parametrize("query", ["", "   ", "\n\t"])
def test_blank_queries_are_rejected(search_service: SearchService, query: str) -> None:
    with pytest.raises(EmptyQueryError):
        search_service.search_semantic(query)
    with pytest.raises(EmptyQueryError):
        search_service.search_keyword(query)
