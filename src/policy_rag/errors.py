"""Exception hierarchy for the policy RAG pipelines.

Adapters wrap collaborator failures (Chroma, embedding runtimes, PDF
loader, chat model) into these types.  Pipelines and the HTTP layer
translate them into structured results; nothing below them leaks a raw
third-party exception to a caller.
"""

from __future__ import annotations

from typing import Any


class PolicyRAGError(Exception):
    """Base class for every error raised by :mod:`policy_rag`.

    Parameters
    ----------
    message:
        Human-readable description, safe to show to a user.
    details:
        Machine-oriented context (underlying library message, sizes, ...).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PolicyRAGError):
    """A required setting is missing or invalid; the process must not serve."""


class VectorStoreConnectionError(PolicyRAGError, ConnectionError):
    """The vector store could not be reached.  Retryable."""

    def __init__(self, endpoint: str, details: dict[str, Any] | None = None) -> None:
        self.endpoint = endpoint
        super().__init__(
            f"Failed to connect to ChromaDB. Ensure the service is running at {endpoint}",
            {"endpoint": endpoint, **(details or {})},
        )


class VectorStoreError(PolicyRAGError):
    """The vector store rejected an upsert or query (e.g. dimension mismatch)."""


class ExtractionError(PolicyRAGError):
    """Text could not be extracted from a single source document."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Failed to extract text from {source}: {reason}", {"source": source})


class EmbeddingError(PolicyRAGError):
    """An embedding backend failed for a batch of texts."""

    def __init__(
        self,
        message: str,
        *,
        batch_size: int,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.batch_size = batch_size
        self.source = source
        context: dict[str, Any] = {"batch_size": batch_size}
        if source is not None:
            context["source"] = source
        super().__init__(message, {**context, **(details or {})})


class AlignmentError(PolicyRAGError):
    """ids / embeddings / documents / metadatas differ in length.

    This is an invariant violation in the caller, never a condition to
    retry.
    """

    def __init__(self, lengths: dict[str, int]) -> None:
        self.lengths = lengths
        summary = ", ".join(f"{name}={n}" for name, n in lengths.items())
        super().__init__(f"Upsert arrays are misaligned ({summary})", {"lengths": lengths})


class GenerationError(PolicyRAGError):
    """The chat model failed while producing a streamed answer."""
