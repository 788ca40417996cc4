"""
Retrieval — vector-index access and the shared chunk/hit data models.

This module wraps the vector store behind a narrow interface so that
neither pipeline needs to know which DB is backing the index.

Public surface
--------------
- :class:`VectorIndexClient` — abstract backend (subclass for Pinecone, etc.).
- :class:`ChromaIndexClient` — default Chroma backend.
- :class:`Chunk`, :class:`QueryHit`, :class:`UpsertBatch`, … — data models.
"""

from policy_rag.retrieval.base import VectorIndexClient
from policy_rag.retrieval.models import (
    Chunk,
    CollectionHandle,
    IngestionResult,
    QueryHit,
    SourceDocument,
    UpsertBatch,
)

__all__ = [
    "Chunk",
    "ChromaIndexClient",
    "CollectionHandle",
    "IngestionResult",
    "QueryHit",
    "SourceDocument",
    "UpsertBatch",
    "VectorIndexClient",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaIndexClient to avoid pulling in chromadb at import time."""
    if name == "ChromaIndexClient":
        from policy_rag.retrieval.chroma_store import ChromaIndexClient

        return ChromaIndexClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
