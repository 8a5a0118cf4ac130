"""Tests for the embedding provider and the bounded embedding call."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any

import pytest

from project_search.embeddings import (
    EmbeddingProvider,
    build_default_provider,
    embed_with_timeout,
)
from project_search.errors import ProviderUnavailableError


# ---------------------------------------------------------------------------
# Mock helpers
# ---------------------------------------------------------------------------


@dataclass
class _FakeEmbedding:
    values: list[float]


@dataclass
class _FakeEmbedResult:
    embeddings: list[_FakeEmbedding]


class _FakeModels:
    """Records calls and returns deterministic embeddings."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> _FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        dim = config.get("output_dimensionality", 768)
        return _FakeEmbedResult(
            embeddings=[
                _FakeEmbedding(values=[float(i + 1)] * dim) for i in range(len(contents))
            ]
        )


class _FakeClient:
    def __init__(self) -> None:
        self.models = _FakeModels()


# ---------------------------------------------------------------------------
# Provider (mock-based, no API key needed)
# ---------------------------------------------------------------------------


def test_embed_texts_returns_correct_count() -> None:
    client = _FakeClient()
    provider = EmbeddingProvider(client=client, dim=4, batch_size=50)

    embeddings = provider.embed_texts(["hello", "world"])

    assert len(embeddings) == 2
    assert len(embeddings[0]) == 4


def test_embed_document_uses_document_task_type() -> None:
    client = _FakeClient()
    provider = EmbeddingProvider(client=client, dim=4)

    result = provider.embed_document("A project about Java development.")

    assert result == [1.0, 1.0, 1.0, 1.0]
    call = client.models.calls[0]
    assert call["contents"] == ["A project about Java development."]
    assert call["config"]["task_type"] == "RETRIEVAL_DOCUMENT"


def test_embed_query_uses_query_task_type() -> None:
    client = _FakeClient()
    provider = EmbeddingProvider(client=client, dim=4)

    result = provider.embed_query("web development")

    assert len(result) == 4
    call = client.models.calls[0]
    assert call["config"]["task_type"] == "RETRIEVAL_QUERY"


def test_embed_texts_batching() -> None:
    client = _FakeClient()
    provider = EmbeddingProvider(client=client, dim=4, batch_size=3)

    texts = [f"text_{i}" for i in range(7)]
    embeddings = provider.embed_texts(texts)

    assert len(embeddings) == 7
    # 7 texts with batch_size=3 → 3 API calls (3+3+1)
    assert len(client.models.calls) == 3
    assert len(client.models.calls[0]["contents"]) == 3
    assert len(client.models.calls[1]["contents"]) == 3
    assert len(client.models.calls[2]["contents"]) == 1


def test_env_overrides(monkeypatch) -> None:
    client = _FakeClient()
    monkeypatch.setenv("PROJECT_SEARCH_EMBEDDING_MODEL", "custom-model-001")
    monkeypatch.setenv("PROJECT_SEARCH_EMBEDDING_DIM", "256")
    monkeypatch.setenv("PROJECT_SEARCH_EMBEDDING_BATCH_SIZE", "10")

    provider = EmbeddingProvider(client=client)

    assert provider.model == "custom-model-001"
    assert provider.dim == 256
    assert provider.batch_size == 10

    provider.embed_texts(["test"])
    call = client.models.calls[0]
    assert call["model"] == "custom-model-001"
    assert call["config"]["output_dimensionality"] == 256


def test_missing_api_key_raises(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
        EmbeddingProvider(api_key=None, client=None)


def test_default_provider_is_absent_without_api_key(monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    assert build_default_provider(timeout=1.0) is None


# ---------------------------------------------------------------------------
# Bounded calls
# ---------------------------------------------------------------------------


def test_embed_with_timeout_returns_immutable_vector() -> None:
    vector = embed_with_timeout(lambda text: [1, 2.5, 3], "x", timeout=1.0, expected_dim=3)

    assert vector == (1.0, 2.5, 3.0)
    assert isinstance(vector, tuple)


def test_embed_with_timeout_wraps_provider_errors() -> None:
    def broken(text: str) -> list[float]:
        raise ConnectionError("connection reset")

    with pytest.raises(ProviderUnavailableError, match="connection reset") as excinfo:
        embed_with_timeout(broken, "x", timeout=1.0)

    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_embed_with_timeout_gives_up_after_deadline() -> None:
    def slow(text: str) -> list[float]:
        time.sleep(0.5)
        return [1.0]

    start = time.perf_counter()
    with pytest.raises(ProviderUnavailableError, match="timed out"):
        embed_with_timeout(slow, "x", timeout=0.05)

    assert time.perf_counter() - start < 0.4


@pytest.mark.parametrize(
    ("output", "message"),
    [
        ([], "empty"),
        ([1.0, 2.0], "expected 3"),
        ([1.0, float("nan"), 2.0], "non-finite"),
        (["a", "b", "c"], "Malformed"),
        (None, "Malformed"),
    ],
)
def test_embed_with_timeout_rejects_bad_vectors(output, message: str) -> None:
    with pytest.raises(ProviderUnavailableError, match=message):
        embed_with_timeout(lambda text: output, "x", timeout=1.0, expected_dim=3)


# ---------------------------------------------------------------------------
# Real API integration test (skipped unless GOOGLE_API_KEY is set)
# ---------------------------------------------------------------------------


@pytest.mark.skipif(
    not os.getenv("GOOGLE_API_KEY"),
    reason="GOOGLE_API_KEY not set, skipping real embedding test",
)
def test_real_embedding_api() -> None:
    provider = EmbeddingProvider(dim=128)

    embeddings = provider.embed_texts(
        ["Web development with HTML, CSS and JavaScript.", "Database security."]
    )

    assert len(embeddings) == 2
    assert len(embeddings[0]) == 128
    assert all(isinstance(v, float) for v in embeddings[0])

    query_emb = provider.embed_query("web development")
    assert len(query_emb) == 128
