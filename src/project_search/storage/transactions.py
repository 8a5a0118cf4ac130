"""
Transactional executors injected into storage backends.

A backend never opens or commits transactions itself; it asks its transactor
for a scope and does its reads and writes inside it. Each transactor also
serializes access, so writes to the same project resolve last-committed-wins.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

import duckdb

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

S = TypeVar("S")


class DuckDBTransactor:
    """BEGIN/COMMIT/ROLLBACK scopes over a single DuckDB connection."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @contextmanager
    def reading(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Yield the connection for read-only statements."""
        with self._lock:
            try:
                yield self._conn
            except duckdb.Error as exc:
                raise PersistenceError(f"Read failed: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Yield the connection inside a transaction.

        Storage errors are rolled back and re-raised as PersistenceError; any
        other exception (NotFoundError included) is rolled back and propagated
        unchanged.
        """
        with self._lock:
            self._conn.begin()
            try:
                yield self._conn
            except duckdb.Error as exc:
                self._rollback(exc)
                raise PersistenceError(f"Transaction failed: {exc}") from exc
            except BaseException as exc:
                self._rollback(exc)
                raise
            try:
                self._conn.commit()
            except duckdb.Error as exc:
                self._rollback(exc)
                raise PersistenceError(f"Commit failed: {exc}") from exc

    def _rollback(self, cause: BaseException) -> None:
        logger.warning("Rolling back transaction: %s", cause)
        try:
            self._conn.rollback()
        except duckdb.Error as rollback_exc:
            # The transaction may already be aborted by DuckDB itself.
            logger.debug("Rollback reported: %s", rollback_exc)


class SnapshotTransactor(Generic[S]):
    """Copy-on-write transactions over an in-process state object.

    The body mutates a private copy; the copy replaces the live state only
    after the body returns and *persist* (if any) has succeeded.
    """

    def __init__(
        self,
        state: S,
        *,
        copy: Callable[[S], S],
        persist: Callable[[S], None] | None = None,
    ) -> None:
        self._state = state
        self._copy = copy
        self._persist = persist
        self._lock = threading.RLock()

    @contextmanager
    def reading(self) -> Iterator[S]:
        with self._lock:
            yield self._state

    @contextmanager
    def transaction(self) -> Iterator[S]:
        with self._lock:
            working = self._copy(self._state)
            try:
                yield working
            except BaseException as exc:
                logger.warning("Discarding uncommitted changes: %s", exc)
                raise
            if self._persist is not None:
                try:
                    self._persist(working)
                except OSError as exc:
                    logger.warning("Discarding uncommitted changes: %s", exc)
                    raise PersistenceError(f"Could not persist changes: {exc}") from exc
            self._state = working
