"""
ProjectSearch - project postings with keyword and semantic search.

This package stores project postings (title, budget, description, tags) in a
transactional backend, keeps an embedding of each description, and ranks
projects by cosine similarity to a free-text query, falling back to keyword
matching whenever the embedding provider is unavailable.

Example usage:
    >>> from project_search import build_services, StoreSettings
    >>> services = build_services(StoreSettings(backend="memory"))
    >>> project = services.store.create_project(
    ...     "Web Development", 2000.0, "Responsive sites", {"Web"}, owner_id=1
    ... )
    >>> result = services.search.search_semantic("web development")
"""

from .config import StoreSettings, open_storage
from .embeddings import EmbeddingBackend, EmbeddingProvider
from .errors import (
    EmptyQueryError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ProjectSearchError,
    ProviderUnavailableError,
    ValidationError,
)
from .search import SearchHit, SearchResult, SearchService
from .services import Services, build_services
from .storage import Project, ProjectStorage
from .store import ProjectStore

__all__ = [
    # Configuration
    "StoreSettings",
    "open_storage",
    "Services",
    "build_services",
    # Embeddings
    "EmbeddingBackend",
    "EmbeddingProvider",
    # Store
    "Project",
    "ProjectStorage",
    "ProjectStore",
    # Search
    "SearchHit",
    "SearchResult",
    "SearchService",
    # Errors
    "ProjectSearchError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "PersistenceError",
    "ProviderUnavailableError",
    "EmptyQueryError",
]
