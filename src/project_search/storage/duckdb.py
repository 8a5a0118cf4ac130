"""
DuckDB storage backend for project persistence.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import duckdb

from ..errors import NotFoundError
from .base import Embedding, Project
from .transactions import DuckDBTransactor

_PROJECT_COLUMNS = "id, title, budget, description, owner_id"


def _placeholders(count: int) -> str:
    return ", ".join(["?"] * count)


class DuckDBProjectStorage:
    """DuckDB-backed persistence for projects, embeddings, and tags."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
        transactor_factory: Callable[
            [duckdb.DuckDBPyConnection], DuckDBTransactor
        ] = DuckDBTransactor,
    ) -> None:
        if db_path == ":memory:":
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        self._tx = transactor_factory(self._conn)
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        # Sequence values are never handed out twice, even after a rollback,
        # so deleted ids are never reused.
        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS project_id_seq START 1;")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id BIGINT PRIMARY KEY,
                title VARCHAR NOT NULL,
                budget DOUBLE NOT NULL CHECK (budget >= 0),
                description VARCHAR NOT NULL,
                owner_id BIGINT NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS project_embeddings (
                project_id BIGINT PRIMARY KEY,
                vector DOUBLE[] NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS project_tags (
                project_id BIGINT NOT NULL,
                tag VARCHAR NOT NULL,
                PRIMARY KEY (project_id, tag)
            );
            """
        )

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
        with self._tx.transaction() as conn:
            row = conn.execute(
                """
                INSERT INTO projects (id, title, budget, description, owner_id)
                VALUES (nextval('project_id_seq'), ?, ?, ?, ?)
                RETURNING id
                """,
                [title, budget, description, owner_id],
            ).fetchone()
            if row is None:
                raise duckdb.Error("Insert returned no project id")
            project_id = int(row[0])
            self._insert_tags(conn, project_id, tags)
            if embedding is not None:
                self._write_embedding(conn, project_id, embedding)
        return Project(
            id=project_id,
            title=title,
            budget=budget,
            description=description,
            owner_id=owner_id,
            tags=frozenset(tags),
            embedding=embedding,
        )

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
        with self._tx.transaction() as conn:
            self._require(conn, project_id)
            conn.execute(
                """
                UPDATE projects
                SET title = ?, budget = ?, description = ?
                WHERE id = ?
                """,
                [title, budget, description, project_id],
            )
            stored_tags = self._tags_for(conn, [project_id]).get(project_id, set())
            self._delete_tags(conn, project_id, stored_tags - tags)
            self._insert_tags(conn, project_id, tags - stored_tags)
            if replace_embedding:
                if embedding is None:
                    conn.execute(
                        "DELETE FROM project_embeddings WHERE project_id = ?",
                        [project_id],
                    )
                else:
                    self._write_embedding(conn, project_id, embedding)
            project = self._fetch(conn, [project_id])[project_id]
        return project

    def delete_project(self, project_id: int) -> None:
        with self._tx.transaction() as conn:
            self._require(conn, project_id)
            conn.execute("DELETE FROM project_tags WHERE project_id = ?", [project_id])
            conn.execute(
                "DELETE FROM project_embeddings WHERE project_id = ?", [project_id]
            )
            conn.execute("DELETE FROM projects WHERE id = ?", [project_id])

    def get_project(self, project_id: int) -> Project | None:
        return self.get_projects([project_id]).get(project_id)

    def get_projects(self, project_ids: Iterable[int]) -> dict[int, Project]:
        ids = list(dict.fromkeys(int(pid) for pid in project_ids))
        if not ids:
            return {}
        with self._tx.reading() as conn:
            return self._fetch(conn, ids)

    def add_tags(self, project_id: int, tags: frozenset[str]) -> Project:
        with self._tx.transaction() as conn:
            self._require(conn, project_id)
            stored_tags = self._tags_for(conn, [project_id]).get(project_id, set())
            self._insert_tags(conn, project_id, tags - stored_tags)
            project = self._fetch(conn, [project_id])[project_id]
        return project

    def remove_tags(self, project_id: int, tags: frozenset[str]) -> Project:
        with self._tx.transaction() as conn:
            self._require(conn, project_id)
            stored_tags = self._tags_for(conn, [project_id]).get(project_id, set())
            self._delete_tags(conn, project_id, stored_tags & tags)
            project = self._fetch(conn, [project_id])[project_id]
        return project

    def set_embedding(self, project_id: int, embedding: Embedding) -> None:
        with self._tx.transaction() as conn:
            self._require(conn, project_id)
            self._write_embedding(conn, project_id, embedding)

    def search_keyword(self, keyword: str) -> list[Project]:
        needle = keyword.lower()
        with self._tx.reading() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT p.id
                FROM projects p
                LEFT JOIN project_tags t ON t.project_id = p.id
                WHERE contains(lower(p.title), ?)
                   OR contains(lower(p.description), ?)
                   OR contains(lower(coalesce(t.tag, '')), ?)
                ORDER BY p.id
                """,
                [needle, needle, needle],
            ).fetchall()
            ids = [int(row[0]) for row in rows]
            projects = self._fetch(conn, ids) if ids else {}
        return [projects[pid] for pid in ids]

    def list_embeddings(self) -> list[tuple[int, Embedding]]:
        with self._tx.reading() as conn:
            rows = conn.execute(
                """
                SELECT e.project_id, e.vector
                FROM project_embeddings e
                JOIN projects p ON p.id = e.project_id
                ORDER BY e.project_id
                """
            ).fetchall()
        return [(int(row[0]), tuple(float(v) for v in row[1])) for row in rows]

    def list_projects_for_owner(self, owner_id: int) -> list[Project]:
        return self._list_where("owner_id = ?", [owner_id])

    def list_projects_without_embedding(self) -> list[Project]:
        return self._list_where(
            "id NOT IN (SELECT project_id FROM project_embeddings)", []
        )

    def _list_where(self, clause: str, params: list[Any]) -> list[Project]:
        with self._tx.reading() as conn:
            rows = conn.execute(
                f"SELECT id FROM projects WHERE {clause} ORDER BY id", params
            ).fetchall()
            ids = [int(row[0]) for row in rows]
            projects = self._fetch(conn, ids) if ids else {}
        return [projects[pid] for pid in ids]

    @staticmethod
    def _require(conn: duckdb.DuckDBPyConnection, project_id: int) -> None:
        row = conn.execute(
            "SELECT 1 FROM projects WHERE id = ? LIMIT 1", [project_id]
        ).fetchone()
        if row is None:
            raise NotFoundError(project_id)

    @staticmethod
    def _insert_tags(
        conn: duckdb.DuckDBPyConnection, project_id: int, tags: Iterable[str]
    ) -> None:
        rows = [(project_id, tag) for tag in sorted(tags)]
        if rows:
            conn.executemany(
                "INSERT INTO project_tags (project_id, tag) VALUES (?, ?)", rows
            )

    @staticmethod
    def _delete_tags(
        conn: duckdb.DuckDBPyConnection, project_id: int, tags: Iterable[str]
    ) -> None:
        rows = [(project_id, tag) for tag in sorted(tags)]
        if rows:
            conn.executemany(
                "DELETE FROM project_tags WHERE project_id = ? AND tag = ?", rows
            )

    @staticmethod
    def _write_embedding(
        conn: duckdb.DuckDBPyConnection, project_id: int, embedding: Embedding
    ) -> None:
        conn.execute(
            """
            INSERT INTO project_embeddings (project_id, vector)
            VALUES (?, ?)
            ON CONFLICT(project_id) DO UPDATE SET vector = excluded.vector
            """,
            [project_id, list(embedding)],
        )

    @staticmethod
    def _tags_for(
        conn: duckdb.DuckDBPyConnection, project_ids: list[int]
    ) -> dict[int, set[str]]:
        rows = conn.execute(
            f"""
            SELECT project_id, tag
            FROM project_tags
            WHERE project_id IN ({_placeholders(len(project_ids))})
            """,
            project_ids,
        ).fetchall()
        tags: dict[int, set[str]] = {}
        for row in rows:
            tags.setdefault(int(row[0]), set()).add(str(row[1]))
        return tags

    @classmethod
    def _fetch(
        cls, conn: duckdb.DuckDBPyConnection, project_ids: list[int]
    ) -> dict[int, Project]:
        placeholders = _placeholders(len(project_ids))
        rows = conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id IN ({placeholders})",
            project_ids,
        ).fetchall()
        tags = cls._tags_for(conn, project_ids)
        embedding_rows = conn.execute(
            f"""
            SELECT project_id, vector
            FROM project_embeddings
            WHERE project_id IN ({placeholders})
            """,
            project_ids,
        ).fetchall()
        embeddings = {
            int(row[0]): tuple(float(v) for v in row[1]) for row in embedding_rows
        }
        return {
            int(row[0]): cls._row_to_project(row, tags, embeddings) for row in rows
        }

    @staticmethod
    def _row_to_project(
        row: tuple[Any, ...],
        tags: dict[int, set[str]],
        embeddings: dict[int, Embedding],
    ) -> Project:
        project_id = int(row[0])
        return Project(
            id=project_id,
            title=str(row[1]),
            budget=float(row[2]),
            description=str(row[3]),
            owner_id=int(row[4]),
            tags=frozenset(tags.get(project_id, set())),
            embedding=embeddings.get(project_id),
        )
