"""Ingestion pipeline — extract → chunk → embed → upsert, one file at a time.

Documents are processed strictly in sequence so chunk ids and progress
logging are deterministic.  Row ids are ``"{source}-{chunk_index}"``,
which makes a re-run overwrite the rows of the previous run instead of
adding new ones; rows of a document that now yields fewer chunks are
deleted after its upsert.

Run from the shell
------------------
    python -m policy_rag.ingestion.pipeline --backend local --documents-dir ./documents
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from policy_rag.config import Settings
from policy_rag.config import settings as default_settings
from policy_rag.errors import ConfigurationError, ExtractionError, PolicyRAGError
from policy_rag.ingestion.chunker import TextChunker
from policy_rag.ingestion.embedder import EmbeddingBackend, EmbeddingProvider, get_embedding_provider
from policy_rag.ingestion.loader import PdfTextExtractor, TextExtractor, list_documents
from policy_rag.retrieval.base import VectorIndexClient
from policy_rag.retrieval.models import CollectionHandle, IngestionResult, SourceDocument, UpsertBatch

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Populate one collection from a directory of PDFs.

    Parameters
    ----------
    provider:
        Embedding backend; must match the one used to query *collection_name*.
    index:
        Vector-index client.
    collection_name:
        Target collection.
    chunker:
        Text splitter (defaults to 1000/200 character windows).
    extractor:
        File → text collaborator (defaults to :class:`PdfTextExtractor`).
    documents_dir:
        Directory scanned when :meth:`ingest` is called without one.
    release_provider:
        Release the provider's resources (e.g. a local model) after every run.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        index: VectorIndexClient,
        collection_name: str,
        *,
        chunker: TextChunker | None = None,
        extractor: TextExtractor | None = None,
        documents_dir: str | Path = default_settings.documents_dir,
        release_provider: bool = True,
    ) -> None:
        self.provider = provider
        self.index = index
        self.collection_name = collection_name
        self.chunker = chunker or TextChunker()
        self.extractor = extractor or PdfTextExtractor()
        self.documents_dir = Path(documents_dir)
        self.release_provider = release_provider

    async def ingest(self, documents_dir: str | Path | None = None) -> IngestionResult:
        """Ingest every PDF in *documents_dir*.

        Never raises for operational failures: they are reported as
        ``IngestionResult(success=False, error=...)``.  ``count`` is the
        number of chunks upserted before the run ended.
        """
        directory = Path(documents_dir) if documents_dir is not None else self.documents_dir
        chunk_count = 0
        try:
            try:
                files = list_documents(directory)
            except FileNotFoundError as exc:
                return IngestionResult(success=False, count=0, error=str(exc))
            if not files:
                return IngestionResult(
                    success=False,
                    count=0,
                    error=f"No PDF files found in the directory: {directory}",
                )

            handle = await self.index.get_or_create_collection(self.collection_name)
            for path in files:
                chunk_count += await self._ingest_file(handle, path)
                logger.info(
                    "File %s successfully ingested. Total chunks added/updated: %d",
                    path.name,
                    chunk_count,
                )
            logger.info(
                "Collection %s now holds %d chunks",
                self.collection_name,
                await self.index.count(handle),
            )
            return IngestionResult(success=True, count=chunk_count)

        except PolicyRAGError as exc:
            logger.error("INGESTION FAILED (%s): %s", self.provider.name, exc, extra={"details": exc.details})
            return IngestionResult(success=False, count=chunk_count, error=exc.message)
        finally:
            if self.release_provider:
                await self.provider.release()

    async def _ingest_file(self, handle: CollectionHandle, path: Path) -> int:
        """Run one file through the stages; returns the number of chunks upserted."""
        logger.info("--- Processing file: %s ---", path.name)
        try:
            text = await asyncio.to_thread(self.extractor.extract, path)
        except ExtractionError as exc:
            logger.warning("[SKIPPING] %s", exc)
            return 0

        if not text:
            logger.warning(
                "[SKIPPING] File %s contains no extractable text. Check if it's a scanned PDF.",
                path.name,
            )
            return 0

        chunks = self.chunker.chunk_document(SourceDocument(source=path.name, text=text))
        if not chunks:
            logger.warning("[SKIPPING] File %s yielded text but no chunks.", path.name)
            return 0

        # An embedding failure here aborts the run before this file touches the index.
        embeddings = await self.provider.embed([c.text for c in chunks])
        batch = UpsertBatch.from_chunks(chunks, embeddings)
        await self.index.upsert(handle, batch)

        # A document that shrank since the last run leaves higher chunk indices behind.
        current = set(batch.ids)
        stale = [row_id for row_id in await self.index.source_ids(handle, path.name) if row_id not in current]
        if stale:
            logger.info("Removing %d stale chunks of %s", len(stale), path.name)
            await self.index.delete(handle, stale)
        return len(batch)


def build_ingestion_pipeline(
    backend: EmbeddingBackend | str,
    settings: Settings = default_settings,
    *,
    index: VectorIndexClient | None = None,
) -> IngestionPipeline:
    """Wire an :class:`IngestionPipeline` for *backend* from *settings*."""
    if index is None:
        from policy_rag.retrieval.chroma_store import ChromaIndexClient

        index = ChromaIndexClient(
            host=settings.chroma_host,
            port=settings.chroma_port,
            distance_metric=settings.distance_metric,
        )
    return IngestionPipeline(
        get_embedding_provider(backend, settings),
        index,
        settings.collection_for(backend),
        chunker=TextChunker(settings.chunk_size, settings.chunk_overlap),
        documents_dir=settings.documents_dir,
    )


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Ingest policy PDFs into the vector index")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in EmbeddingBackend],
        default=EmbeddingBackend.CLOUD.value,
        help="Embedding backend (selects the target collection)",
    )
    parser.add_argument(
        "--documents-dir",
        default=None,
        help="Directory containing PDFs (defaults to DOCUMENTS_DIR)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=default_settings.log_level)
    if args.backend == EmbeddingBackend.CLOUD.value:
        try:
            default_settings.validate_required()
        except ConfigurationError as exc:
            print(exc)
            return 2

    pipeline = build_ingestion_pipeline(args.backend)
    result = asyncio.run(pipeline.ingest(args.documents_dir))
    if result.success:
        print(f"Ingestion successful. Total chunks added to ChromaDB: {result.count}")
        return 0
    print(f"Ingestion failed: {result.error}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
