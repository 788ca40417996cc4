"""Text chunking."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from langchain_text_splitters import RecursiveCharacterTextSplitter

from policy_rag.config import settings
from policy_rag.retrieval.models import Chunk, SourceDocument

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


class TextChunker:
    """Recursive character splitter with overlap.

    Tries paragraph breaks first, then line breaks, then spaces, and
    finally hard-splits at character boundaries.  Adjacent small pieces
    are merged up to ``chunk_size`` and consecutive chunks share up to
    ``chunk_overlap`` characters.

    Parameters
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of overlapping characters between consecutive chunks.
    separators:
        Split boundaries, in priority order.
    """

    def __init__(
        self,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
        separators: Sequence[str] = DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
            separators=list(separators),
        )

    def chunk(self, text: str) -> list[str]:
        """Split *text*; empty or whitespace-only input yields ``[]``."""
        if not text or not text.strip():
            return []
        return self._splitter.split_text(text)

    def chunk_document(self, document: SourceDocument) -> list[Chunk]:
        """Split *document* into :class:`Chunk` objects numbered from 0."""
        pieces = self.chunk(document.text)
        logger.info("Split %s into %d chunks.", document.source, len(pieces))
        return [
            Chunk(source=document.source, chunk_index=idx, text=piece)
            for idx, piece in enumerate(pieces)
        ]
