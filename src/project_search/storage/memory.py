"""
In-process storage backend.

Used directly for tests and ephemeral runs, and by the local file backend,
which injects a persisting transactor.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable

from ..errors import NotFoundError
from .base import Embedding, Project
from .transactions import SnapshotTransactor


@dataclass
class MemoryState:
    """Live table contents. Projects are immutable, so a shallow copy suffices."""

    next_id: int = 1
    projects: dict[int, Project] = field(default_factory=dict)

    def copy(self) -> MemoryState:
        return MemoryState(next_id=self.next_id, projects=dict(self.projects))


def _contains(haystack: str, needle: str) -> bool:
    return needle in haystack.lower()


class InMemoryProjectStorage:
    """Dictionary-backed persistence with snapshot transactions."""

    def __init__(self, transactor: SnapshotTransactor[MemoryState] | None = None) -> None:
        self._tx = transactor or SnapshotTransactor(MemoryState(), copy=MemoryState.copy)

    def initialize(self) -> None:
        return None

    def close(self) -> None:
        return None

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
        with self._tx.transaction() as state:
            project = Project(
                id=state.next_id,
                title=title,
                budget=budget,
                description=description,
                owner_id=owner_id,
                tags=frozenset(tags),
                embedding=embedding,
            )
            state.next_id += 1
            state.projects[project.id] = project
        return project

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
        with self._tx.transaction() as state:
            current = self._require(state, project_id)
            updated = replace(
                current,
                title=title,
                budget=budget,
                description=description,
                tags=frozenset(tags),
                embedding=embedding if replace_embedding else current.embedding,
            )
            state.projects[project_id] = updated
        return updated

    def delete_project(self, project_id: int) -> None:
        with self._tx.transaction() as state:
            self._require(state, project_id)
            del state.projects[project_id]

    def get_project(self, project_id: int) -> Project | None:
        with self._tx.reading() as state:
            return state.projects.get(project_id)

    def get_projects(self, project_ids: Iterable[int]) -> dict[int, Project]:
        with self._tx.reading() as state:
            return {
                pid: state.projects[pid] for pid in project_ids if pid in state.projects
            }

    def add_tags(self, project_id: int, tags: frozenset[str]) -> Project:
        with self._tx.transaction() as state:
            current = self._require(state, project_id)
            updated = replace(current, tags=current.tags | tags)
            state.projects[project_id] = updated
        return updated

    def remove_tags(self, project_id: int, tags: frozenset[str]) -> Project:
        with self._tx.transaction() as state:
            current = self._require(state, project_id)
            updated = replace(current, tags=current.tags - tags)
            state.projects[project_id] = updated
        return updated

    def set_embedding(self, project_id: int, embedding: Embedding) -> None:
        with self._tx.transaction() as state:
            current = self._require(state, project_id)
            state.projects[project_id] = replace(current, embedding=embedding)

    def search_keyword(self, keyword: str) -> list[Project]:
        needle = keyword.lower()
        with self._tx.reading() as state:
            return [
                project
                for _, project in sorted(state.projects.items())
                if _contains(project.title, needle)
                or _contains(project.description, needle)
                or any(_contains(tag, needle) for tag in project.tags)
            ]

    def list_embeddings(self) -> list[tuple[int, Embedding]]:
        with self._tx.reading() as state:
            return [
                (pid, project.embedding)
                for pid, project in sorted(state.projects.items())
                if project.embedding is not None
            ]

    def list_projects_for_owner(self, owner_id: int) -> list[Project]:
        with self._tx.reading() as state:
            return [
                project
                for _, project in sorted(state.projects.items())
                if project.owner_id == owner_id
            ]

    def list_projects_without_embedding(self) -> list[Project]:
        with self._tx.reading() as state:
            return [
                project
                for _, project in sorted(state.projects.items())
                if project.embedding is None
            ]

    @staticmethod
    def _require(state: MemoryState, project_id: int) -> Project:
        project = state.projects.get(project_id)
        if project is None:
            raise NotFoundError(project_id)
        return project
