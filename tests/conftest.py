"""Shared pytest configuration, in-memory fakes and fixtures."""

from __future__ import annotations

import math
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest
from langchain_core.messages import AIMessageChunk

from policy_rag.errors import EmbeddingError, ExtractionError
from policy_rag.ingestion.embedder import EmbeddingProvider
from policy_rag.retrieval.base import VectorIndexClient
from policy_rag.retrieval.models import CollectionHandle, QueryHit, UpsertBatch


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic 3-d vectors derived from the text itself."""

    name = "fake"

    def __init__(self, *, fail_on: str | None = None, drop_last: bool = False) -> None:
        super().__init__()
        self.calls: list[list[str]] = []
        self.releases = 0
        self._fail_on = fail_on
        self._drop_last = drop_last

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self._fail_on is not None and any(self._fail_on in t for t in texts):
            raise EmbeddingError("fake backend refused the batch", batch_size=len(texts))
        vectors = [
            [float(len(t)), float(sum(map(ord, t)) % 97), float(t.count(" "))] for t in texts
        ]
        return vectors[:-1] if self._drop_last else vectors

    async def release(self) -> None:
        self.releases += 1


class InMemoryIndex(VectorIndexClient):
    """Dict-backed index with L2 distances."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.upserts: list[UpsertBatch] = []
        self.healthy = True
        self.opened: list[str] = []

    async def get_or_create_collection(self, name: str) -> CollectionHandle:
        self.opened.append(name)
        rows = self.collections.setdefault(name, {})
        return CollectionHandle(name=name, collection=rows)

    async def upsert(self, handle: CollectionHandle, batch: UpsertBatch) -> None:
        self.upserts.append(batch)
        for row_id, emb, doc, meta in zip(batch.ids, batch.embeddings, batch.documents, batch.metadatas):
            handle.collection[row_id] = {"embedding": emb, "document": doc, "metadata": meta}

    async def query(self, handle: CollectionHandle, query_embedding: Sequence[float], k: int) -> list[QueryHit]:
        if k <= 0:
            return []
        hits = [
            QueryHit(
                id=row_id,
                document=row["document"],
                metadata=row["metadata"],
                distance=math.dist(row["embedding"], query_embedding),
            )
            for row_id, row in handle.collection.items()
        ]
        return sorted(hits, key=lambda h: h.distance)[:k]

    async def health_check(self) -> bool:
        return self.healthy

    async def source_ids(self, handle: CollectionHandle, source: str) -> list[str]:
        return [row_id for row_id, row in handle.collection.items() if row["metadata"].get("source") == source]

    async def delete(self, handle: CollectionHandle, ids: Sequence[str]) -> None:
        for row_id in ids:
            handle.collection.pop(row_id, None)

    async def count(self, handle: CollectionHandle) -> int:
        return len(handle.collection)


class FakeExtractor:
    """Returns canned text per file name; exceptions are raised as extraction failures."""

    def __init__(self, texts: dict[str, Any]) -> None:
        self.texts = texts

    def extract(self, path: Path) -> str:
        value = self.texts[path.name]
        if isinstance(value, Exception):
            raise ExtractionError(path.name, str(value))
        return value


class FakeChatModel:
    """Streams a fixed list of pieces; optionally fails after ``fail_after`` pieces."""

    def __init__(self, pieces: Sequence[str] = ("Employees ", "get ", "20 days."), fail_after: int | None = None) -> None:
        self.pieces = list(pieces)
        self.fail_after = fail_after
        self.received: list[Any] = []
        self.closed = False
        self.emitted = 0

    async def astream(self, messages: Any):
        self.received.append(messages)
        try:
            for i, piece in enumerate(self.pieces):
                if self.fail_after is not None and i >= self.fail_after:
                    raise RuntimeError("upstream connection reset")
                self.emitted += 1
                yield AIMessageChunk(content=piece)
        finally:
            self.closed = True


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture()
def index() -> InMemoryIndex:
    return InMemoryIndex()


@pytest.fixture()
def chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture()
def fakes() -> dict[str, type]:
    """Fake classes, for tests that need non-default construction."""
    return {
        "provider": FakeEmbeddingProvider,
        "index": InMemoryIndex,
        "extractor": FakeExtractor,
        "chat_model": FakeChatModel,
    }
