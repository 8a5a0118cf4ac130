"""
Configuration helpers for project storage and search.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

from .storage import (
    DuckDBProjectStorage,
    InMemoryProjectStorage,
    ProjectStorage,
    open_local_storage,
)

Backend = Literal["duckdb", "memory", "local"]

DEFAULT_DB_PATH = "~/.project_search/projects.duckdb"
DEFAULT_LOCAL_PATH = "~/.project_search/projects.json"
DEFAULT_EMBEDDING_TIMEOUT = 10.0

ENV_BACKEND = "PROJECT_SEARCH_BACKEND"
ENV_DB_PATH = "PROJECT_SEARCH_DB_PATH"
ENV_REQUIRE_EMBEDDINGS = "PROJECT_SEARCH_REQUIRE_EMBEDDINGS"
ENV_EMBEDDING_TIMEOUT = "PROJECT_SEARCH_EMBEDDING_TIMEOUT"
ENV_ENFORCE_OWNER = "PROJECT_SEARCH_ENFORCE_OWNER"

_BACKENDS: tuple[Backend, ...] = ("duckdb", "memory", "local")
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def resolve_db_path(override_path: str | None = None, backend: Backend = "duckdb") -> str:
    """
    Resolve the storage path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) PROJECT_SEARCH_DB_PATH
    3) default path for the backend
    """
    default = DEFAULT_LOCAL_PATH if backend == "local" else DEFAULT_DB_PATH
    raw_path = override_path or os.getenv(ENV_DB_PATH) or default
    if raw_path == ":memory:":
        return raw_path
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


@dataclass(frozen=True)
class StoreSettings:
    """Deployment policy for the project store.

    require_embeddings selects the write policy when the provider fails:
    False stores the project without an embedding (keyword-only), True fails
    the write with ProviderUnavailableError.
    """

    backend: Backend = "duckdb"
    db_path: str | None = None
    require_embeddings: bool = False
    embedding_timeout: float | None = DEFAULT_EMBEDDING_TIMEOUT
    enforce_owner: bool = True

    @classmethod
    def from_env(
        cls,
        *,
        backend: str | None = None,
        db_path: str | None = None,
    ) -> StoreSettings:
        raw_backend = (backend or os.getenv(ENV_BACKEND) or "duckdb").strip().lower()
        if raw_backend not in _BACKENDS:
            raise ValueError(
                f"Unknown storage backend {raw_backend!r}; expected one of {_BACKENDS}"
            )
        resolved_backend = cast(Backend, raw_backend)
        raw_timeout = os.getenv(ENV_EMBEDDING_TIMEOUT)
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_EMBEDDING_TIMEOUT
        return cls(
            backend=resolved_backend,
            db_path=None
            if resolved_backend == "memory"
            else resolve_db_path(db_path, resolved_backend),
            require_embeddings=_env_flag(ENV_REQUIRE_EMBEDDINGS, False),
            embedding_timeout=timeout if timeout > 0 else None,
            enforce_owner=_env_flag(ENV_ENFORCE_OWNER, True),
        )


def open_storage(settings: StoreSettings) -> ProjectStorage:
    """Instantiate the storage backend selected by *settings*."""
    if settings.backend == "memory":
        return InMemoryProjectStorage()
    path = settings.db_path or resolve_db_path(None, settings.backend)
    if settings.backend == "local":
        return open_local_storage(path)
    return DuckDBProjectStorage(path)
