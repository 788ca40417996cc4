"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from policy_rag.config import Settings
from policy_rag.errors import ConfigurationError
from policy_rag.ingestion.embedder import EmbeddingBackend


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_required_fields_are_flagged() -> None:
    assert set(Settings.required_fields()) == {"openai_api_key", "chroma_host"}


def test_missing_required_reports_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    s = _settings(openai_api_key="", chroma_host="  ")
    assert s.missing_required() == ["openai_api_key", "chroma_host"]


def test_validate_required_raises_configuration_error() -> None:
    s = _settings(openai_api_key="")
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY") as exc_info:
        s.validate_required()
    assert exc_info.value.details["missing"] == ["openai_api_key"]


def test_validate_required_passes_when_set() -> None:
    _settings(openai_api_key="sk-test", chroma_host="chroma").validate_required()


def test_env_vars_populate_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHROMA_HOST", "chroma.internal")
    monkeypatch.setenv("CHROMA_PORT", "9000")
    monkeypatch.setenv("RETRIEVAL_K", "4")
    s = _settings()
    assert s.chroma_endpoint == "http://chroma.internal:9000"
    assert s.retrieval_k == 4


def test_collection_names_differ_per_backend() -> None:
    s = _settings(collection_name="kummatty_policies")
    assert s.collection_for(EmbeddingBackend.CLOUD) == "kummatty_policies"
    assert s.collection_for(EmbeddingBackend.LOCAL) == "kummatty_policies_local"
    assert s.collection_for("local") == "kummatty_policies_local"


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown embedding backend"):
        _settings().collection_for("gpu")


def test_overlap_must_be_smaller_than_chunk_size() -> None:
    with pytest.raises(ValidationError):
        _settings(chunk_size=100, chunk_overlap=100)


def test_retrieval_k_bounds() -> None:
    with pytest.raises(ValidationError):
        _settings(retrieval_k=0)


def test_distance_metric_restricted(monkeypatch: pytest.MonkeyPatch) -> None:
    assert _settings(distance_metric="l2").distance_metric == "l2"
    monkeypatch.setenv("DISTANCE_METRIC", "cosin")
    with pytest.raises(ValidationError):
        _settings()
