"""Embedding providers — one interface, a cloud and a local backend.

Both pipelines receive an :class:`EmbeddingProvider` instance; which one
is chosen by configuration (:class:`EmbeddingBackend`), never by
inspecting the object.  A collection is only ever written and read with
the backend it was created with.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from langchain_huggingface import HuggingFaceEmbeddings
from langchain_openai import OpenAIEmbeddings

from policy_rag.config import settings as default_settings
from policy_rag.errors import EmbeddingError

if TYPE_CHECKING:
    from policy_rag.config import Settings

logger = logging.getLogger(__name__)


class EmbeddingBackend(str, Enum):
    """Supported embedding backends; each owns its own collection."""

    CLOUD = "cloud"
    LOCAL = "local"


class EmbeddingProvider(ABC):
    """Text → fixed-dimension vectors.

    ``embed`` returns exactly one vector per input text, in input order,
    and is deterministic for a fixed model version.
    """

    name: str = "embedding"

    def __init__(self) -> None:
        self.dimension: int | None = None

    @abstractmethod
    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*; raises :class:`EmbeddingError` on backend failure."""
        ...

    async def release(self) -> None:
        """Free any resources held by the provider.  Safe to call repeatedly."""

    def _check(self, texts: Sequence[str], vectors: list[list[float]] | None) -> list[list[float]]:
        if not vectors:
            raise EmbeddingError(
                "Failed to generate embeddings. The response did not contain any vectors.",
                batch_size=len(texts),
                details={"provider": self.name},
            )
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}.",
                batch_size=len(texts),
                details={"provider": self.name, "returned": len(vectors)},
            )
        self.dimension = len(vectors[0])
        return [list(v) for v in vectors]


class CloudEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API, one batched request per call.

    Parameters
    ----------
    model:
        Embedding model identifier.
    api_key:
        API credential.
    base_url:
        Optional OpenAI-compatible endpoint.
    """

    name = "cloud"

    def __init__(
        self,
        model: str = default_settings.cloud_embedding_model,
        *,
        api_key: str = default_settings.openai_api_key,
        base_url: str = default_settings.llm_base_url,
    ) -> None:
        super().__init__()
        self.model = model
        self._api_key = api_key
        self._base_url = base_url
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> OpenAIEmbeddings:
        if self._client is None:
            kwargs: dict = {"model": self.model, "api_key": self._api_key}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = OpenAIEmbeddings(**kwargs)
        return self._client

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        logger.info("Generating embeddings for %d chunks using %s...", len(texts), self.model)
        try:
            vectors = await self._get_client().aembed_documents(list(texts))
        except Exception as exc:
            raise EmbeddingError(
                f"Embedding request to {self.model} failed: {exc}",
                batch_size=len(texts),
                details={"provider": self.name, "reason": str(exc)},
            ) from exc
        return self._check(texts, vectors)


class LocalEmbeddingProvider(EmbeddingProvider):
    """In-process sentence-transformers model.

    The model is loaded on the first :meth:`embed` call (the warm-up is
    paid once) and dropped by :meth:`release`; a later call loads it
    again.  Vectors are mean-pooled token embeddings (the pooling the
    sentence-transformers checkpoint is configured with), L2-normalised.

    Loading and inference run in a worker thread; the instance lock
    serialises them, so one instance may be shared by concurrent
    requests.
    """

    name = "local"

    def __init__(self, model: str = default_settings.local_embedding_model) -> None:
        super().__init__()
        self.model = model
        self._embedder: HuggingFaceEmbeddings | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._embedder is not None

    def _load(self) -> HuggingFaceEmbeddings:
        logger.info("Initializing local embedding model: %s...", self.model)
        embedder = HuggingFaceEmbeddings(
            model_name=self.model,
            encode_kwargs={"normalize_embeddings": True},
        )
        logger.info("Local embedding model initialized.")
        return embedder

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            try:
                if self._embedder is None:
                    self._embedder = await asyncio.to_thread(self._load)
                logger.info("Generating embeddings for %d chunks with %s...", len(texts), self.model)
                vectors = await asyncio.to_thread(self._embedder.embed_documents, list(texts))
            except Exception as exc:
                raise EmbeddingError(
                    f"Local embedding with {self.model} failed: {exc}",
                    batch_size=len(texts),
                    details={"provider": self.name, "reason": str(exc)},
                ) from exc
        return self._check(texts, vectors)

    async def release(self) -> None:
        async with self._lock:
            if self._embedder is not None:
                logger.info("Releasing local embedding model %s", self.model)
            self._embedder = None


def get_embedding_provider(
    backend: EmbeddingBackend | str,
    settings: Settings = default_settings,
) -> EmbeddingProvider:
    """Return a fresh provider for *backend* configured from *settings*."""
    backend = EmbeddingBackend(backend)
    if backend is EmbeddingBackend.CLOUD:
        return CloudEmbeddingProvider(
            settings.cloud_embedding_model,
            api_key=settings.openai_api_key,
            base_url=settings.llm_base_url,
        )
    return LocalEmbeddingProvider(settings.local_embedding_model)
