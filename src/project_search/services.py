"""
Wiring of storage, embedding provider, store, and search service.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import StoreSettings, open_storage
from .embeddings import EmbeddingBackend, build_default_provider
from .search import SearchService
from .store import ProjectStore


@dataclass
class Services:
    """The objects an entry point needs, built from one StoreSettings."""

    store: ProjectStore
    search: SearchService

    def close(self) -> None:
        self.store.storage.close()


def build_services(
    settings: StoreSettings | None = None,
    *,
    embedding_provider: EmbeddingBackend | None = None,
) -> Services:
    """Build services from *settings* (default: environment).

    Without an explicit provider, the GenAI provider is used when
    GOOGLE_API_KEY is set; otherwise everything runs keyword-only.
    """
    resolved = settings or StoreSettings.from_env()
    provider = embedding_provider or build_default_provider(
        timeout=resolved.embedding_timeout
    )
    store = ProjectStore(open_storage(resolved), provider, resolved)
    search = SearchService(store, provider, timeout=resolved.embedding_timeout)
    return Services(store=store, search=search)
