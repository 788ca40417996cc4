"""Document discovery and PDF text extraction."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from langchain_community.document_loaders import PyPDFLoader

from policy_rag.errors import ExtractionError

PDF_EXTENSIONS: tuple[str, ...] = (".pdf",)


class TextExtractor(Protocol):
    """Anything that turns a file into plain text."""

    def extract(self, path: Path) -> str: ...


class PdfTextExtractor:
    """Extract the text layer of a PDF with LangChain's ``PyPDFLoader``.

    Scanned PDFs without a text layer come back as an empty string; the
    ingestion pipeline skips those.
    """

    def extract(self, path: Path) -> str:
        try:
            pages = PyPDFLoader(str(path)).load()
        except Exception as exc:
            raise ExtractionError(path.name, str(exc)) from exc
        return "\n\n".join(page.page_content for page in pages).strip()


def list_documents(directory: str | Path, extensions: tuple[str, ...] = PDF_EXTENSIONS) -> list[Path]:
    """Return files in *directory* with a recognised extension, sorted by name.

    Raises
    ------
    FileNotFoundError
        If *directory* does not exist.
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Documents directory not found: {root}")
    return sorted(
        p for p in root.iterdir() if p.is_file() and p.suffix.lower() in extensions
    )
