"""Storage backends for project persistence."""

from .base import Embedding, Project, ProjectStorage
from .duckdb import DuckDBProjectStorage
from .local import LocalFileStore, open_local_storage
from .memory import InMemoryProjectStorage, MemoryState
from .transactions import DuckDBTransactor, SnapshotTransactor

__all__ = [
    "Embedding",
    "Project",
    "ProjectStorage",
    "DuckDBProjectStorage",
    "LocalFileStore",
    "open_local_storage",
    "InMemoryProjectStorage",
    "MemoryState",
    "DuckDBTransactor",
    "SnapshotTransactor",
]
