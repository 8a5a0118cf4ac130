"""
Project store: validation, embedding maintenance, and policy on top of a
storage backend.

The backend owns transactions; this layer decides what goes into them. The
embedding is always computed before a transaction is opened, so no
transaction is ever held across a provider call.
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Iterable

from .config import StoreSettings
from .embeddings import EmbeddingBackend, embed_with_timeout
from .errors import (
    NotFoundError,
    PermissionDeniedError,
    ProviderUnavailableError,
    ValidationError,
)
from .storage import Embedding, Project, ProjectStorage

logger = logging.getLogger(__name__)


def _validate_title(title: object) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title must be a non-empty string", field="title")
    return title


def _validate_budget(budget: object) -> float:
    if isinstance(budget, bool) or not isinstance(budget, Real):
        raise ValidationError("Budget must be a number", field="budget")
    value = float(budget)
    if not math.isfinite(value):
        raise ValidationError("Budget must be finite", field="budget")
    if value < 0:
        raise ValidationError("Budget must not be negative", field="budget")
    return value


def _validate_description(description: object) -> str:
    if not isinstance(description, str):
        raise ValidationError("Description must be a string", field="description")
    return description


def _validate_owner_id(owner_id: object) -> int:
    if isinstance(owner_id, bool) or not isinstance(owner_id, int):
        raise ValidationError("Owner id must be an integer", field="owner_id")
    return owner_id


def _validate_tags(tags: Iterable[str] | None) -> frozenset[str]:
    if tags is None:
        return frozenset()
    if isinstance(tags, str):
        raise ValidationError("Tags must be a collection of strings", field="tags")
    validated: set[str] = set()
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError(f"Malformed tag: {tag!r}", field="tags")
        validated.add(tag)
    return frozenset(validated)


class ProjectStore:
    """Transactional project persistence with per-project embeddings."""

    def __init__(
        self,
        storage: ProjectStorage,
        embedding_provider: EmbeddingBackend | None = None,
        settings: StoreSettings | None = None,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.settings = settings or StoreSettings()

    def create_project(
        self,
        title: str,
        budget: float,
        description: str,
        tags: Iterable[str] | None,
        owner_id: int,
    ) -> Project:
        """Validate, embed, and persist a new project in one transaction."""
        clean_title = _validate_title(title)
        clean_budget = _validate_budget(budget)
        clean_description = _validate_description(description)
        clean_tags = _validate_tags(tags)
        clean_owner_id = _validate_owner_id(owner_id)

        embedding = self._embed_for_write(clean_description)
        project = self.storage.insert_project(
            title=clean_title,
            budget=clean_budget,
            description=clean_description,
            owner_id=clean_owner_id,
            tags=clean_tags,
            embedding=embedding,
        )
        logger.debug(
            "Created project %d (embedding=%s)", project.id, project.has_embedding
        )
        return project

    def edit_project(
        self,
        project_id: int,
        title: str,
        budget: float,
        description: str,
        tags: Iterable[str] | None,
        editor_id: int | None = None,
    ) -> Project:
        """Update a project; the embedding is recomputed only if the description changed."""
        current = self.get_project_by_id(project_id)
        self._authorize_edit(current, editor_id)

        clean_title = _validate_title(title)
        clean_budget = _validate_budget(budget)
        clean_description = _validate_description(description)
        clean_tags = _validate_tags(tags)

        replace_embedding = clean_description != current.description
        embedding: Embedding | None = None
        if replace_embedding:
            # A stale vector would rank the project by its old description,
            # so a failed re-embed clears it rather than keeping it.
            embedding = self._embed_for_write(clean_description)

        project = self.storage.update_project(
            project_id,
            title=clean_title,
            budget=clean_budget,
            description=clean_description,
            tags=clean_tags,
            embedding=embedding,
            replace_embedding=replace_embedding,
        )
        logger.debug(
            "Edited project %d (re-embedded=%s)", project_id, replace_embedding
        )
        return project

    def delete_project(self, project_id: int) -> None:
        self.storage.delete_project(project_id)
        logger.debug("Deleted project %d", project_id)

    def get_project_by_id(self, project_id: int) -> Project:
        project = self.storage.get_project(project_id)
        if project is None:
            raise NotFoundError(project_id)
        return project

    def get_projects(self, project_ids: Iterable[int]) -> dict[int, Project]:
        return self.storage.get_projects(project_ids)

    def add_tags(self, project_id: int, tags: Iterable[str]) -> Project:
        return self.storage.add_tags(project_id, _validate_tags(tags))

    def remove_tags(self, project_id: int, tags: Iterable[str]) -> Project:
        return self.storage.remove_tags(project_id, _validate_tags(tags))

    def get_projects_by_keyword(self, keyword: str) -> list[Project]:
        if not isinstance(keyword, str) or not keyword.strip():
            raise ValidationError("Keyword must be a non-empty string", field="keyword")
        return self.storage.search_keyword(keyword.strip())

    def list_all_with_embeddings(self) -> list[tuple[int, Embedding]]:
        return self.storage.list_embeddings()

    def list_projects_for_owner(self, owner_id: int) -> list[Project]:
        return self.storage.list_projects_for_owner(owner_id)

    def backfill_embeddings(self) -> int:
        """Embed degraded projects. Stops at the first provider failure."""
        if self.embedding_provider is None:
            raise ProviderUnavailableError("No embedding provider configured")
        written = 0
        for project in self.storage.list_projects_without_embedding():
            try:
                embedding = self._embed(project.description)
            except ProviderUnavailableError as exc:
                logger.warning("Backfill stopped at project %d: %s", project.id, exc)
                break
            try:
                self.storage.set_embedding(project.id, embedding)
            except NotFoundError:
                logger.debug("Project %d deleted during backfill", project.id)
                continue
            written += 1
        logger.info("Backfilled %d embeddings", written)
        return written

    def _authorize_edit(self, project: Project, editor_id: int | None) -> None:
        if not self.settings.enforce_owner:
            return
        if editor_id is None or editor_id != project.owner_id:
            raise PermissionDeniedError(project.id, editor_id)

    def _embed(self, text: str) -> Embedding:
        if self.embedding_provider is None:
            raise ProviderUnavailableError("No embedding provider configured")
        return embed_with_timeout(
            self.embedding_provider.embed_document,
            text,
            timeout=self.settings.embedding_timeout,
            expected_dim=getattr(self.embedding_provider, "dim", None),
        )

    def _embed_for_write(self, description: str) -> Embedding | None:
        try:
            return self._embed(description)
        except ProviderUnavailableError as exc:
            if self.settings.require_embeddings:
                raise
            logger.warning("Storing project without embedding: %s", exc)
            return None
