"""Retrieval & generation — embed the query, fetch top-k chunks, stream an answer.

Usage::

    pipeline = build_chat_pipeline("local")
    async for piece in pipeline.answer("How many days of parental leave?"):
        print(piece, end="")

The HTTP layer calls :meth:`ChatPipeline.prepare` and
:meth:`ChatPipeline.generate` separately so that retrieval failures are
reported as an error response before any part of the body is sent.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from policy_rag.config import Settings
from policy_rag.config import settings as default_settings
from policy_rag.errors import GenerationError, VectorStoreError
from policy_rag.generation.prompts import build_rag_prompt
from policy_rag.ingestion.embedder import EmbeddingBackend, EmbeddingProvider, get_embedding_provider

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from policy_rag.retrieval.base import VectorIndexClient
    from policy_rag.retrieval.models import CollectionHandle, QueryHit

logger = logging.getLogger(__name__)


class ChatPipeline:
    """Answer questions from one collection.

    Parameters
    ----------
    provider:
        The embedding backend that populated *collection_name*.
    index:
        Vector-index client.
    collection_name:
        Collection to search.
    llm:
        LangChain chat model; anything exposing ``astream(messages)``.
    k:
        Number of chunks retrieved per query.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        index: VectorIndexClient,
        collection_name: str,
        llm: Any,
        *,
        k: int = default_settings.retrieval_k,
    ) -> None:
        self.provider = provider
        self.index = index
        self.collection_name = collection_name
        self.llm = llm
        self.k = k
        self._handle: CollectionHandle | None = None

    async def _collection(self) -> CollectionHandle:
        if self._handle is None:
            self._handle = await self.index.get_or_create_collection(self.collection_name)
        return self._handle

    async def retrieve(self, query: str) -> list[QueryHit]:
        """Top-k hits for *query*, most similar first."""
        [embedding] = await self.provider.embed([query])
        try:
            hits = await self.index.query(await self._collection(), embedding, self.k)
        except VectorStoreError:
            # The collection may have been dropped and recreated under a new id.
            self._handle = None
            raise
        logger.info("Retrieved %d chunks from %s for %r", len(hits), self.collection_name, query)
        return hits

    async def prepare(self, query: str) -> list[BaseMessage]:
        """Retrieve context for *query* and build the prompt."""
        if not query or not query.strip():
            raise ValueError("query must be a non-empty string")
        hits = await self.retrieve(query)
        return build_rag_prompt(query, hits)

    async def generate(self, messages: list[BaseMessage]) -> AsyncIterator[str]:
        """Yield text increments from the model as they arrive.

        If the consumer stops iterating, the model stream is closed.  A
        model failure mid-stream raises :class:`GenerationError`; the text
        already yielded stays delivered.
        """
        stream = self.llm.astream(messages)
        try:
            async for chunk in stream:
                text = getattr(chunk, "content", chunk)
                if isinstance(text, str) and text:
                    yield text
        except Exception as exc:
            logger.error("Generation stream failed: %s", exc)
            raise GenerationError(
                "The model stream failed before the answer was complete.",
                {"reason": str(exc)},
            ) from exc
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def answer(self, query: str) -> AsyncIterator[str]:
        """Retrieve, then stream the generated answer to *query*."""
        messages = await self.prepare(query)
        async for text in self.generate(messages):
            yield text


def build_chat_pipeline(
    backend: EmbeddingBackend | str,
    settings: Settings = default_settings,
    *,
    index: VectorIndexClient | None = None,
    llm: Any = None,
) -> ChatPipeline:
    """Wire a :class:`ChatPipeline` that reads the collection *backend* populates."""
    if index is None:
        from policy_rag.retrieval.chroma_store import ChromaIndexClient

        index = ChromaIndexClient(
            host=settings.chroma_host,
            port=settings.chroma_port,
            distance_metric=settings.distance_metric,
        )
    if llm is None:
        from policy_rag.generation.llm import get_llm

        llm = get_llm(settings)
    return ChatPipeline(
        get_embedding_provider(backend, settings),
        index,
        settings.collection_for(backend),
        llm,
        k=settings.retrieval_k,
    )
