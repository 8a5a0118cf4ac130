"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI embedding API for batch and single-text embedding
with configurable model, dimensions, and batch size, and bounds every call
made on behalf of the store or the search service with a timeout.
"""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Protocol, Sequence

from google.genai import Client as GenAIClient
from google.genai.types import HttpOptions

from .errors import ProviderUnavailableError
from .storage import Embedding

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50

# Provider calls run here so a caller can stop waiting on them; a call that
# overruns its timeout keeps its worker until the transport gives up.
_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="embedding")


class EmbeddingBackend(Protocol):
    """Capability consumed by the store and the search service."""

    dim: int | None

    def embed_document(self, text: str) -> Sequence[float]:
        """Embed a project description."""

    def embed_query(self, query: str) -> Sequence[float]:
        """Embed a search query."""


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("PROJECT_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("PROJECT_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(
            os.getenv("PROJECT_SEARCH_EMBEDDING_BATCH_SIZE", str(_DEFAULT_BATCH_SIZE))
        )

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            http_options = None
            if timeout is not None:
                http_options = HttpOptions(timeout=int(timeout * 1000))
            self._client = GenAIClient(api_key=resolved_key, http_options=http_options)

    def embed_texts(
        self,
        texts: list[str],
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> list[list[float]]:
        """Embed a list of texts in batches.

        Returns a list of embedding vectors in the same order as *texts*.
        """
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            result = self._client.models.embed_content(
                model=self.model,
                contents=batch,
                config={
                    "task_type": task_type,
                    "output_dimensionality": self.dim,
                },
            )
            for emb in result.embeddings:
                all_embeddings.append(list(emb.values))
        return all_embeddings

    def embed_document(self, text: str) -> list[float]:
        """Embed a single project description for storage."""
        return self.embed_texts([text])[0]

    def embed_query(self, query: str) -> list[float]:
        """Embed a single query text for retrieval."""
        result = self._client.models.embed_content(
            model=self.model,
            contents=[query],
            config={
                "task_type": "RETRIEVAL_QUERY",
                "output_dimensionality": self.dim,
            },
        )
        return list(result.embeddings[0].values)


def build_default_provider(*, timeout: float | None = None) -> EmbeddingProvider | None:
    """Return a GenAI provider, or None when no API key is configured."""
    try:
        return EmbeddingProvider(timeout=timeout)
    except ValueError as exc:
        logger.warning("Embedding provider disabled: %s", exc)
        return None


def embed_with_timeout(
    embed: Callable[[str], Sequence[float]],
    text: str,
    *,
    timeout: float | None,
    expected_dim: int | None = None,
) -> Embedding:
    """Call *embed* with a deadline and return an immutable, validated vector.

    Every failure mode (timeout, transport error, malformed output) surfaces
    as ProviderUnavailableError.
    """
    future = _EXECUTOR.submit(embed, text)
    try:
        raw = future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise ProviderUnavailableError(
            f"Embedding call timed out after {timeout}s"
        ) from exc
    except ProviderUnavailableError:
        raise
    except Exception as exc:
        raise ProviderUnavailableError(f"Embedding call failed: {exc}") from exc

    try:
        vector = tuple(float(value) for value in raw)
    except (TypeError, ValueError) as exc:
        raise ProviderUnavailableError(f"Malformed embedding: {exc}") from exc
    if not vector:
        raise ProviderUnavailableError("Provider returned an empty embedding")
    if expected_dim is not None and len(vector) != expected_dim:
        raise ProviderUnavailableError(
            f"Provider returned {len(vector)} dimensions, expected {expected_dim}"
        )
    if not all(math.isfinite(value) for value in vector):
        raise ProviderUnavailableError("Provider returned a non-finite embedding")
    return vector
