"""Unit tests for the ingestion pipeline.

The index, embedding backend and PDF extractor are in-memory fakes (see
``conftest.py``); files only need to exist with a ``.pdf`` suffix.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from policy_rag.ingestion.chunker import TextChunker
from policy_rag.ingestion.loader import list_documents
from policy_rag.ingestion.pipeline import IngestionPipeline, main

PARAGRAPHS = ["a" * 40, "b" * 40, "c" * 40]
THREE_CHUNK_TEXT = "\n\n".join(PARAGRAPHS)


def _touch(directory: Path, *names: str) -> None:
    for name in names:
        (directory / name).write_bytes(b"%PDF-1.4 placeholder")


def _pipeline(provider, index, extractor, documents_dir: Path, **kwargs) -> IngestionPipeline:
    return IngestionPipeline(
        provider,
        index,
        "policies",
        chunker=TextChunker(chunk_size=50, chunk_overlap=10),
        extractor=extractor,
        documents_dir=documents_dir,
        **kwargs,
    )


# ──────────────────────────────────────────────────────────────────────
# Discovery
# ──────────────────────────────────────────────────────────────────────


class TestListDocuments:
    def test_only_pdfs_sorted(self, tmp_path: Path) -> None:
        _touch(tmp_path, "b.pdf", "a.PDF", "notes.txt")
        (tmp_path / "sub.pdf").mkdir()
        assert [p.name for p in list_documents(tmp_path)] == ["a.PDF", "b.pdf"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Documents directory not found"):
            list_documents(tmp_path / "nope")


# ──────────────────────────────────────────────────────────────────────
# Runs
# ──────────────────────────────────────────────────────────────────────


class TestIngest:
    def test_single_document_three_chunks(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "A.pdf")
        pipeline = _pipeline(provider, index, fakes["extractor"]({"A.pdf": THREE_CHUNK_TEXT}), tmp_path)

        result = asyncio.run(pipeline.ingest())

        assert result.success is True
        assert result.count == 3
        assert result.error is None
        rows = index.collections["policies"]
        assert sorted(rows) == ["A.pdf-0", "A.pdf-1", "A.pdf-2"]
        assert rows["A.pdf-1"]["document"] == PARAGRAPHS[1]
        assert rows["A.pdf-2"]["metadata"] == {"source": "A.pdf", "chunk_index": 2}

    def test_reingest_is_idempotent_and_latest_wins(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "A.pdf")
        texts = {"A.pdf": THREE_CHUNK_TEXT}
        pipeline = _pipeline(provider, index, fakes["extractor"](texts), tmp_path)

        first = asyncio.run(pipeline.ingest())
        texts["A.pdf"] = "\n\n".join(["a" * 40, "B" * 40, "c" * 40])
        second = asyncio.run(pipeline.ingest())

        assert first.count == second.count == 3
        rows = index.collections["policies"]
        assert len(rows) == 3
        assert rows["A.pdf-1"]["document"] == "B" * 40

    def test_shrunk_document_leaves_no_stale_rows(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "A.pdf", "B.pdf")
        texts = {"A.pdf": THREE_CHUNK_TEXT, "B.pdf": THREE_CHUNK_TEXT}
        pipeline = _pipeline(provider, index, fakes["extractor"](texts), tmp_path)

        asyncio.run(pipeline.ingest())
        texts["A.pdf"] = "Only one paragraph remains."
        result = asyncio.run(pipeline.ingest())

        assert result.count == 4
        rows = index.collections["policies"]
        assert sorted(rows) == ["A.pdf-0", "B.pdf-0", "B.pdf-1", "B.pdf-2"]
        assert rows["A.pdf-0"]["document"] == "Only one paragraph remains."

    def test_running_total_across_documents(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "a.pdf", "b.pdf")
        extractor = fakes["extractor"]({"a.pdf": THREE_CHUNK_TEXT, "b.pdf": "short policy"})
        result = asyncio.run(_pipeline(provider, index, extractor, tmp_path).ingest())
        assert result.count == 4
        # Strictly one embed call per document, in file order.
        assert [len(c) for c in provider.calls] == [3, 1]

    def test_no_pdf_files(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "readme.txt")
        result = asyncio.run(_pipeline(provider, index, fakes["extractor"]({}), tmp_path).ingest())
        assert result.success is False
        assert result.count == 0
        assert result.error == f"No PDF files found in the directory: {tmp_path}"
        assert provider.calls == []

    def test_missing_directory_reported(self, tmp_path: Path, provider, index, fakes) -> None:
        pipeline = _pipeline(provider, index, fakes["extractor"]({}), tmp_path)
        result = asyncio.run(pipeline.ingest(tmp_path / "absent"))
        assert result.success is False
        assert "Documents directory not found" in result.error

    def test_empty_and_unreadable_documents_skipped(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "a.pdf", "b.pdf", "c.pdf")
        extractor = fakes["extractor"](
            {"a.pdf": "", "b.pdf": ValueError("xref table broken"), "c.pdf": "Travel is reimbursed."}
        )
        result = asyncio.run(_pipeline(provider, index, extractor, tmp_path).ingest())

        assert result.success is True
        assert result.count == 1
        assert list(index.collections["policies"]) == ["c.pdf-0"]
        assert provider.calls == [["Travel is reimbursed."]]

    def test_embedding_failure_is_fatal(self, tmp_path: Path, index, fakes) -> None:
        _touch(tmp_path, "a.pdf", "b.pdf", "c.pdf")
        provider = fakes["provider"](fail_on="POISON")
        extractor = fakes["extractor"](
            {"a.pdf": THREE_CHUNK_TEXT, "b.pdf": "POISON clause", "c.pdf": "never reached"}
        )
        result = asyncio.run(_pipeline(provider, index, extractor, tmp_path).ingest())

        assert result.success is False
        assert result.error == "fake backend refused the batch"
        # Chunks of a.pdf stay indexed; b.pdf is absent, c.pdf never processed.
        assert result.count == 3
        assert sorted(index.collections["policies"]) == ["a.pdf-0", "a.pdf-1", "a.pdf-2"]
        assert len(provider.calls) == 2

    def test_misaligned_embeddings_never_reach_store(self, tmp_path: Path, index, fakes) -> None:
        _touch(tmp_path, "a.pdf")
        provider = fakes["provider"](drop_last=True)
        extractor = fakes["extractor"]({"a.pdf": THREE_CHUNK_TEXT})
        result = asyncio.run(_pipeline(provider, index, extractor, tmp_path).ingest())

        assert result.success is False
        assert "misaligned" in result.error
        assert index.upserts == []

    def test_provider_released_after_run(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "a.pdf")
        pipeline = _pipeline(provider, index, fakes["extractor"]({"a.pdf": "text"}), tmp_path)
        asyncio.run(pipeline.ingest())
        asyncio.run(pipeline.ingest())
        assert provider.releases == 2

    def test_provider_kept_when_release_disabled(self, tmp_path: Path, provider, index, fakes) -> None:
        _touch(tmp_path, "a.pdf")
        pipeline = _pipeline(
            provider, index, fakes["extractor"]({"a.pdf": "text"}), tmp_path, release_provider=False
        )
        asyncio.run(pipeline.ingest())
        assert provider.releases == 0


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


def test_cli_reports_failure_exit_code(tmp_path: Path, provider, index, fakes, monkeypatch, capsys) -> None:
    pipeline = _pipeline(provider, index, fakes["extractor"]({}), tmp_path)
    monkeypatch.setattr(
        "policy_rag.ingestion.pipeline.build_ingestion_pipeline", lambda backend: pipeline
    )
    assert main(["--backend", "local", "--documents-dir", str(tmp_path)]) == 1
    assert "No PDF files found" in capsys.readouterr().out
