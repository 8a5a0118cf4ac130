"""
Storage interfaces and data models for project persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

Embedding = tuple[float, ...]


@dataclass(frozen=True)
class Project:
    """A stored project posting with its tag set and optional embedding."""

    id: int
    title: str
    budget: float
    description: str
    owner_id: int
    tags: frozenset[str] = frozenset()
    embedding: Embedding | None = field(default=None, repr=False)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "budget": self.budget,
            "description": self.description,
            "owner_id": self.owner_id,
            "tags": sorted(self.tags),
            "has_embedding": self.has_embedding,
        }


class ProjectStorage(Protocol):
    """Protocol for the persistence operations behind ProjectStore.

    Every mutating method runs as one transaction: it either commits fully or
    leaves the backend exactly as it was. Inputs are already validated.
    """

    def initialize(self) -> None:
        """Initialize required tables or files."""

    def close(self) -> None:
        """Release any held resources."""

    def insert_project(
        self,
        *,
        title: str,
        budget: float,
        description: str,
        owner_id: int,
        tags: frozenset[str],
        embedding: Embedding | None,
    ) -> Project:
        """Insert a project with its tags and embedding, assigning a new id."""

    def update_project(
        self,
        project_id: int,
        *,
        title: str,
        budget: float,
        description: str,
        tags: frozenset[str],
        embedding: Embedding | None = None,
        replace_embedding: bool = False,
    ) -> Project:
        """Update fields in place and replace the tag set by set difference.

        The stored embedding is only touched when *replace_embedding* is set;
        a ``None`` embedding then clears it.
        """

    def delete_project(self, project_id: int) -> None:
        """Remove the project, its embedding, and all of its tags."""

    def get_project(self, project_id: int) -> Project | None:
        """Get a project by id."""

    def get_projects(self, project_ids: Iterable[int]) -> dict[int, Project]:
        """Fetch several projects at once, keyed by id. Missing ids are skipped."""

    def add_tags(self, project_id: int, tags: frozenset[str]) -> Project:
        """Add tags, ignoring ones already present."""

    def remove_tags(self, project_id: int, tags: frozenset[str]) -> Project:
        """Remove tags, ignoring ones not present."""

    def set_embedding(self, project_id: int, embedding: Embedding) -> None:
        """Store or replace the embedding of an existing project."""

    def search_keyword(self, keyword: str) -> list[Project]:
        """Case-insensitive substring match over title, description and tags."""

    def list_embeddings(self) -> list[tuple[int, Embedding]]:
        """Return (project_id, embedding) pairs for projects that have one."""

    def list_projects_for_owner(self, owner_id: int) -> list[Project]:
        """List projects owned by *owner_id* in id order."""

    def list_projects_without_embedding(self) -> list[Project]:
        """List degraded projects in id order."""
