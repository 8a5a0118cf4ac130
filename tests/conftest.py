from __future__ import annotations

import re
import time
from pathlib import Path

import pytest

from project_search.config import StoreSettings
from project_search.search import SearchService
from project_search.storage import (
    DuckDBProjectStorage,
    InMemoryProjectStorage,
    open_local_storage,
)
from project_search.store import ProjectStore

VOCABULARY = [
    "java",
    "python",
    "web",
    "development",
    "html",
    "css",
    "javascript",
    "database",
    "performance",
    "security",
    "machine",
    "learning",
    "algorithms",
    "automation",
    "scripts",
]

DUMMY_PROJECTS = [
    ("Java Project", 1000.0, "Java development of robust backend applications.", {"Java", "Programming"}),
    ("Python Automation", 1500.5, "Python automation of everyday tasks with scripts.", {"Python", "Automation"}),
    ("Web Development", 2000.0, "Web development with HTML, CSS and JavaScript.", {"Web Design", "JavaScript"}),
    ("Database Management", 1200.0, "Database performance and security tuning.", {"SQL", "Database", "Security"}),
    ("Machine Learning", 2500.0, "Machine learning algorithms to predict data trends.", {"Machine Learning", "Data Science"}),
]


class StubEmbedder:
    """Deterministic bag-of-words embeddings over a fixed vocabulary."""

    def __init__(self) -> None:
        self.dim = len(VOCABULARY)
        self.calls: list[tuple[str, str]] = []

    def _vector(self, text: str) -> list[float]:
        tokens = re.findall(r"[a-z]+", text.lower())
        return [float(tokens.count(word)) for word in VOCABULARY]

    def embed_document(self, text: str) -> list[float]:
        self.calls.append(("document", text))
        return self._vector(text)

    def embed_query(self, query: str) -> list[float]:
        self.calls.append(("query", query))
        return self._vector(query)


class FailingEmbedder:
    """Provider whose every call fails like a transport error."""

    dim = len(VOCABULARY)

    def embed_document(self, text: str) -> list[float]:
        raise RuntimeError("quota exceeded")

    def embed_query(self, query: str) -> list[float]:
        raise RuntimeError("quota exceeded")


class SlowEmbedder(StubEmbedder):
    """Provider that answers only after *delay* seconds."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    def embed_query(self, query: str) -> list[float]:
        time.sleep(self.delay)
        return super().embed_query(query)


@pytest.fixture(params=["memory", "duckdb", "local"])
def storage(request, tmp_path: Path):
    """Each storage backend, freshly initialized."""
    if request.param == "memory":
        backend = InMemoryProjectStorage()
    elif request.param == "duckdb":
        backend = DuckDBProjectStorage(str(tmp_path / "projects.duckdb"))
    else:
        backend = open_local_storage(str(tmp_path / "projects.json"))
    yield backend
    backend.close()


@pytest.fixture()
def embedder() -> StubEmbedder:
    return StubEmbedder()


@pytest.fixture()
def store(storage, embedder: StubEmbedder) -> ProjectStore:
    return ProjectStore(storage, embedder, StoreSettings(embedding_timeout=5.0))


@pytest.fixture()
def search_service(store: ProjectStore, embedder: StubEmbedder) -> SearchService:
    return SearchService(store, embedder, timeout=5.0)


@pytest.fixture()
def seeded_store(store: ProjectStore) -> ProjectStore:
    for title, budget, description, tags in DUMMY_PROJECTS:
        store.create_project(title, budget, description, tags, owner_id=7)
    return store
