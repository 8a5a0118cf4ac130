"""
Local JSON-file storage backend.

The file holds the whole table plus the id counter, so ids stay unique across
restarts even after deletions. Writes go to a sibling temp file that replaces
the existing one, so a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .base import Project
from .memory import InMemoryProjectStorage, MemoryState
from .transactions import SnapshotTransactor

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class LocalFileStore:
    """Load and save MemoryState as a JSON document."""

    def __init__(self, path: str) -> None:
        self.path = Path(path).expanduser().resolve()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> MemoryState:
        if not self.path.exists():
            return MemoryState()
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        projects = [self._project_from_json(item) for item in payload.get("projects", [])]
        state = MemoryState(
            next_id=int(payload.get("next_id", 1)),
            projects={project.id: project for project in projects},
        )
        if state.projects:
            state.next_id = max(state.next_id, max(state.projects) + 1)
        logger.debug("Loaded %d projects from %s", len(state.projects), self.path)
        return state

    def save(self, state: MemoryState) -> None:
        payload = {
            "version": _FORMAT_VERSION,
            "next_id": state.next_id,
            "projects": [
                self._project_to_json(project)
                for _, project in sorted(state.projects.items())
            ],
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    @staticmethod
    def _project_to_json(project: Project) -> dict[str, Any]:
        return {
            "id": project.id,
            "title": project.title,
            "budget": project.budget,
            "description": project.description,
            "owner_id": project.owner_id,
            "tags": sorted(project.tags),
            "embedding": list(project.embedding) if project.embedding is not None else None,
        }

    @staticmethod
    def _project_from_json(item: dict[str, Any]) -> Project:
        embedding = item.get("embedding")
        return Project(
            id=int(item["id"]),
            title=str(item["title"]),
            budget=float(item["budget"]),
            description=str(item.get("description", "")),
            owner_id=int(item.get("owner_id", 0)),
            tags=frozenset(str(tag) for tag in item.get("tags", [])),
            embedding=tuple(float(v) for v in embedding) if embedding is not None else None,
        )


def open_local_storage(path: str) -> InMemoryProjectStorage:
    """Return an in-memory storage whose commits are written through to *path*."""
    store = LocalFileStore(path)
    transactor = SnapshotTransactor(
        store.load(),
        copy=MemoryState.copy,
        persist=store.save,
    )
    return InMemoryProjectStorage(transactor)
