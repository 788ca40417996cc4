"""Chroma implementation of the vector-index abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import chromadb

from policy_rag.config import settings
from policy_rag.errors import VectorStoreConnectionError, VectorStoreError
from policy_rag.retrieval.base import VectorIndexClient
from policy_rag.retrieval.models import CollectionHandle, QueryHit, UpsertBatch

logger = logging.getLogger(__name__)


class ChromaIndexClient(VectorIndexClient):
    """Chroma-backed index talking to a Chroma server over HTTP.

    Parameters
    ----------
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    distance_metric:
        ``hnsw:space`` for newly created collections (``cosine`` | ``l2`` | ``ip``).
        Ignored for collections that already exist.
    """

    def __init__(
        self,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        distance_metric: str = settings.distance_metric,
    ) -> None:
        self._host = host
        self._port = port
        self._distance_metric = distance_metric
        self._client: Any = None

    @property
    def endpoint(self) -> str:
        return f"http://{self._host}:{self._port}"

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await chromadb.AsyncHttpClient(host=self._host, port=self._port)
        return self._client

    # -- VectorIndexClient overrides ------------------------------------------

    async def get_or_create_collection(self, name: str) -> CollectionHandle:
        logger.info("Attempting to connect to Chroma at: %s", self.endpoint)
        try:
            client = await self._get_client()
        except Exception as exc:
            logger.error("Error connecting to ChromaDB at %s: %s", self.endpoint, exc)
            # Drop the client so the next call reconnects.
            self._client = None
            raise VectorStoreConnectionError(self.endpoint, {"reason": str(exc)}) from exc

        try:
            collection = await client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": self._distance_metric},
            )
        except Exception as exc:
            raise VectorStoreError(
                f"Creating collection '{name}' failed",
                {"collection": name, "distance_metric": self._distance_metric, "reason": str(exc)},
            ) from exc
        logger.info("Retrieved/created collection: %s", name)
        return CollectionHandle(name=name, collection=collection)

    async def upsert(self, handle: CollectionHandle, batch: UpsertBatch) -> None:
        if not len(batch):
            return
        try:
            await handle.collection.upsert(
                ids=batch.ids,
                embeddings=batch.embeddings,
                documents=batch.documents,
                metadatas=batch.metadatas,
            )
        except Exception as exc:
            raise VectorStoreError(
                f"Upsert into collection '{handle.name}' failed",
                {"collection": handle.name, "rows": len(batch), "reason": str(exc)},
            ) from exc

    async def query(
        self,
        handle: CollectionHandle,
        query_embedding: Sequence[float],
        k: int,
    ) -> list[QueryHit]:
        if k <= 0:
            return []
        try:
            results = await handle.collection.query(
                query_embeddings=[list(query_embedding)],
                n_results=k,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            # Chroma refuses embeddings whose dimension differs from the
            # collection's, which is what a cross-provider query looks like.
            raise VectorStoreError(
                f"Query against collection '{handle.name}' failed",
                {"collection": handle.name, "dimension": len(query_embedding), "reason": str(exc)},
            ) from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits = [
            QueryHit(id=doc_id, document=content or "", metadata=dict(meta or {}), distance=float(dist))
            for doc_id, content, meta, dist in zip(ids, docs, metas, distances)
        ]
        hits.sort(key=lambda h: h.distance)
        return hits[:k]

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            await client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            self._client = None
            return False

    async def source_ids(self, handle: CollectionHandle, source: str) -> list[str]:
        try:
            results = await handle.collection.get(where={"source": source}, include=[])
        except Exception as exc:
            raise VectorStoreError(
                f"Listing rows of '{source}' in collection '{handle.name}' failed",
                {"collection": handle.name, "source": source, "reason": str(exc)},
            ) from exc
        return list(results.get("ids") or [])

    async def delete(self, handle: CollectionHandle, ids: Sequence[str]) -> None:
        if not ids:
            return
        try:
            await handle.collection.delete(ids=list(ids))
        except Exception as exc:
            raise VectorStoreError(
                f"Delete from collection '{handle.name}' failed",
                {"collection": handle.name, "rows": len(ids), "reason": str(exc)},
            ) from exc

    async def count(self, handle: CollectionHandle) -> int:
        try:
            return await handle.collection.count()
        except Exception as exc:
            raise VectorStoreError(
                f"Counting rows of collection '{handle.name}' failed",
                {"collection": handle.name, "reason": str(exc)},
            ) from exc
