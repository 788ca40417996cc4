"""FastAPI application exposing ingestion and streamed chat over HTTP."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from policy_rag.config import Settings
from policy_rag.config import settings as default_settings
from policy_rag.generation.chat import ChatPipeline, build_chat_pipeline
from policy_rag.ingestion.embedder import EmbeddingBackend
from policy_rag.ingestion.pipeline import IngestionPipeline, build_ingestion_pipeline
from policy_rag.retrieval.base import VectorIndexClient

logger = logging.getLogger(__name__)


# ── Services ──────────────────────────────────────────────────────────
@dataclass
class RAGServices:
    """Everything the routes need, built once per process.

    Chat pipelines keep their own embedding provider warm; ingestion
    pipelines get a separate one that is released after every run.
    """

    index: VectorIndexClient
    ingestion: dict[EmbeddingBackend, IngestionPipeline]
    chat: dict[EmbeddingBackend, ChatPipeline]
    ingest_locks: dict[EmbeddingBackend, asyncio.Lock] = field(
        default_factory=lambda: {backend: asyncio.Lock() for backend in EmbeddingBackend}
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> RAGServices:
        from policy_rag.generation.llm import get_llm
        from policy_rag.retrieval.chroma_store import ChromaIndexClient

        index = ChromaIndexClient(
            host=settings.chroma_host,
            port=settings.chroma_port,
            distance_metric=settings.distance_metric,
        )
        llm = get_llm(settings)
        return cls(
            index=index,
            ingestion={b: build_ingestion_pipeline(b, settings, index=index) for b in EmbeddingBackend},
            chat={b: build_chat_pipeline(b, settings, index=index, llm=llm) for b in EmbeddingBackend},
        )


# ── Request / Response schemas ────────────────────────────────────────
class ChatRequest(BaseModel):
    """Incoming question from the user."""

    query: str | None = None


# ── Routes ────────────────────────────────────────────────────────────
router = APIRouter()


def _services(request: Request) -> RAGServices:
    return request.app.state.services


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe — is the vector store reachable?"""
    if await _services(request).index.health_check():
        return JSONResponse({"status": "ok"})
    return JSONResponse({"status": "unavailable", "vector_store": "unreachable"}, status_code=503)


async def _ingest(request: Request, backend: EmbeddingBackend) -> JSONResponse:
    logger.info("Ingestion request received (%s)...", backend.value)
    services = _services(request)
    try:
        # Runs against the same collection must not interleave their upserts.
        async with services.ingest_locks[backend]:
            result = await services.ingestion[backend].ingest()
    except Exception as exc:
        logger.exception("API Ingestion Error")
        return JSONResponse(
            {"message": "Internal server error during ingestion process.", "error": str(exc)},
            status_code=500,
        )

    if result.success:
        return JSONResponse(
            {
                "message": f"Ingestion successful. Total chunks added to ChromaDB: {result.count}",
                "count": result.count,
            }
        )
    return JSONResponse({"message": "Ingestion failed.", "error": result.error}, status_code=500)


async def _relay(chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    try:
        async for text in chunks:
            yield text
    finally:
        # Client gone or stream finished: release the model stream now.
        await chunks.aclose()


async def _chat(request: Request, backend: EmbeddingBackend, payload: ChatRequest | None):
    query = (payload.query or "").strip() if payload is not None else ""
    if not query:
        return JSONResponse({"error": "Missing query parameter in request body."}, status_code=400)

    logger.info("[%s] Received chat query: %s", backend.value, query)
    pipeline = _services(request).chat[backend]
    try:
        messages = await pipeline.prepare(query)
    except Exception as exc:
        logger.exception("Chat API Error (%s)", backend.value)
        return JSONResponse(
            {"error": "An error occurred during RAG processing.", "details": str(exc)},
            status_code=500,
        )

    return StreamingResponse(
        _relay(pipeline.generate(messages)),
        media_type="text/plain; charset=utf-8",
    )


@router.post("/api/ingest")
async def ingest(request: Request) -> JSONResponse:
    """Ingest the documents directory with cloud embeddings."""
    return await _ingest(request, EmbeddingBackend.CLOUD)


@router.post("/api/ingest-local")
async def ingest_local(request: Request) -> JSONResponse:
    """Ingest the documents directory with the local embedding model."""
    return await _ingest(request, EmbeddingBackend.LOCAL)


@router.post("/api/chat")
async def chat(request: Request, payload: ChatRequest | None = None):
    """Stream an answer grounded in the cloud-embedding collection."""
    return await _chat(request, EmbeddingBackend.CLOUD, payload)


@router.post("/api/chat-local")
async def chat_local(request: Request, payload: ChatRequest | None = None):
    """Stream an answer grounded in the local-embedding collection."""
    return await _chat(request, EmbeddingBackend.LOCAL, payload)


# ── Application ───────────────────────────────────────────────────────
def create_app(services: RAGServices | None = None, settings: Settings = default_settings) -> FastAPI:
    """Build the API.

    With *services* given (tests, embedding in another process) nothing
    is validated or constructed at startup.  Otherwise startup fails with
    :class:`~policy_rag.errors.ConfigurationError` when a required
    setting is missing.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            logging.basicConfig(level=settings.log_level)
            settings.validate_required()
            app.state.services = RAGServices.from_settings(settings)
        yield

    app = FastAPI(
        title="Policy RAG API",
        version="0.1.0",
        description="Ingest policy PDFs and ask grounded questions about them.",
        lifespan=lifespan,
    )
    app.state.services = services
    app.include_router(router)
    return app


app = create_app()


def main(argv: list[str] | None = None) -> None:
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Serve the policy RAG API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args(argv)
    uvicorn.run(
        "policy_rag.serving.app:app",
        host=args.host,
        port=args.port,
        log_level=default_settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
