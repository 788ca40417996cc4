"""Abstract base class for vector-index backends.

Adding a new backend (Pinecone, Weaviate, Qdrant …) only requires
subclassing :class:`VectorIndexClient` and implementing the abstract
coroutines.  Both pipelines are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from policy_rag.retrieval.models import CollectionHandle, QueryHit, UpsertBatch


class VectorIndexClient(ABC):
    """Named-collection upsert and nearest-neighbour query."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def get_or_create_collection(self, name: str) -> CollectionHandle:
        """Return a handle to collection *name*, creating it if needed.

        Idempotent.  Raises
        :class:`~policy_rag.errors.VectorStoreConnectionError` when the
        store is unreachable.
        """
        ...

    @abstractmethod
    async def upsert(self, handle: CollectionHandle, batch: UpsertBatch) -> None:
        """Insert or overwrite the rows of *batch*, keyed by id."""
        ...

    @abstractmethod
    async def query(
        self,
        handle: CollectionHandle,
        query_embedding: Sequence[float],
        k: int,
    ) -> list[QueryHit]:
        """Return at most *k* hits ordered by ascending distance.

        ``k <= 0`` returns an empty list.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    @abstractmethod
    async def source_ids(self, handle: CollectionHandle, source: str) -> list[str]:
        """IDs of every row whose ``source`` metadata equals *source*."""
        ...

    @abstractmethod
    async def delete(self, handle: CollectionHandle, ids: Sequence[str]) -> None:
        """Delete rows by their IDs.  Unknown IDs are ignored."""
        ...

    @abstractmethod
    async def count(self, handle: CollectionHandle) -> int:
        """Number of rows in the collection."""
        ...
