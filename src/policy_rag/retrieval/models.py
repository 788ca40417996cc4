"""Domain models shared by ingestion and retrieval."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from policy_rag.errors import AlignmentError


class SourceDocument(BaseModel):
    """Extracted text of one source file.

    Attributes
    ----------
    source:
        Stable identifier of the file, its name within the documents
        directory (e.g. ``"leave_policy.pdf"``).
    text:
        Plain text produced by the extractor.
    """

    source: str
    text: str


class Chunk(BaseModel):
    """A bounded window of a :class:`SourceDocument`, the retrieval unit.

    ``(source, chunk_index)`` is unique within a collection, and the row id
    derived from it makes re-ingesting the same file overwrite its rows.
    """

    source: str
    chunk_index: int
    text: str

    @property
    def chunk_id(self) -> str:
        return f"{self.source}-{self.chunk_index}"

    @property
    def metadata(self) -> dict[str, Any]:
        return {"source": self.source, "chunk_index": self.chunk_index}


@dataclass
class UpsertBatch:
    """Column-oriented rows for one upsert call.

    The four arrays are aligned index-for-index; construction fails with
    :class:`AlignmentError` otherwise so a misaligned batch can never be
    sent to the store.
    """

    ids: list[str]
    embeddings: list[list[float]]
    documents: list[str]
    metadatas: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        lengths = {
            "ids": len(self.ids),
            "embeddings": len(self.embeddings),
            "documents": len(self.documents),
            "metadatas": len(self.metadatas),
        }
        if len(set(lengths.values())) != 1:
            raise AlignmentError(lengths)

    def __len__(self) -> int:
        return len(self.ids)

    @classmethod
    def from_chunks(cls, chunks: Sequence[Chunk], embeddings: Sequence[Sequence[float]]) -> UpsertBatch:
        """Build aligned arrays from chunks and their embeddings."""
        if len(chunks) != len(embeddings):
            raise AlignmentError({"chunks": len(chunks), "embeddings": len(embeddings)})
        return cls(
            ids=[c.chunk_id for c in chunks],
            embeddings=[list(e) for e in embeddings],
            documents=[c.text for c in chunks],
            metadatas=[c.metadata for c in chunks],
        )


@dataclass(frozen=True)
class QueryHit:
    """One nearest-neighbour result; lower ``distance`` is more similar."""

    id: str
    document: str
    metadata: dict[str, Any]
    distance: float

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "unknown"))

    @property
    def chunk_index(self) -> int | None:
        return self.metadata.get("chunk_index")

    @property
    def score(self) -> float:
        """Distance mapped to a 0-1 relevance score (higher = more similar)."""
        return 1.0 / (1.0 + self.distance)


@dataclass
class CollectionHandle:
    """Opaque reference to a named collection held by a :class:`VectorIndexClient`."""

    name: str
    collection: Any = field(repr=False, default=None)


class IngestionResult(BaseModel):
    """Outcome of one ingestion run."""

    success: bool
    count: int = 0
    error: str | None = None
