"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from policy_rag.errors import ConfigurationError

if TYPE_CHECKING:
    from policy_rag.ingestion.embedder import EmbeddingBackend


def _required(**kwargs) -> dict:
    return {"json_schema_extra": {"required": True}, **kwargs}


def _optional(**kwargs) -> dict:
    return {"json_schema_extra": {"required": False}, **kwargs}


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Every field is flagged ``required`` or optional in its schema extra.
    Required fields may still default to an empty value so the module can
    be imported (tests, CLI ``--help``); :meth:`validate_required` is the
    startup gate that refuses to run with them unset.
    """

    # LLM / cloud embeddings
    openai_api_key: str = Field(
        default="",
        description="API key for generation and cloud embeddings",
        **_required(),
    )
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier", **_optional())
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the LLM API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, LiteLLM, ...)."
        ),
        **_optional(),
    )
    llm_temperature: float = Field(default=0.0, ge=0.0, le=2.0, **_optional())

    # Vector store
    chroma_host: str = Field(default="localhost", description="Chroma server hostname", **_required())
    chroma_port: int = Field(default=8000, **_optional())
    collection_name: str = Field(default="policies", description="Cloud-embedding collection", **_optional())
    local_collection_suffix: str = Field(default="_local", **_optional())
    distance_metric: Literal["cosine", "l2", "ip"] = Field(
        default="cosine", description="hnsw:space for new collections", **_optional()
    )

    # Embedding
    cloud_embedding_model: str = Field(default="text-embedding-3-small", **_optional())
    local_embedding_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2", **_optional())

    # Ingestion
    documents_dir: str = Field(default="documents", description="Directory scanned for PDFs", **_optional())
    chunk_size: int = Field(default=1000, gt=0, **_optional())
    chunk_overlap: int = Field(default=200, ge=0, **_optional())

    # Retrieval
    retrieval_k: int = Field(default=5, ge=1, le=20, **_optional())

    log_level: str = Field(default="INFO", **_optional())

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_overlap(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be less than "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    # -- helpers --------------------------------------------------------------

    @classmethod
    def required_fields(cls) -> list[str]:
        """Names of the options flagged as required."""
        return [
            name
            for name, info in cls.model_fields.items()
            if isinstance(info.json_schema_extra, dict) and info.json_schema_extra.get("required")
        ]

    def missing_required(self) -> list[str]:
        """Required options that are unset or blank."""
        missing = []
        for name in self.required_fields():
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def validate_required(self) -> None:
        """Raise :class:`ConfigurationError` when a required option is absent."""
        missing = self.missing_required()
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(
                f"Missing required configuration: {env_names}",
                details={"missing": missing},
            )

    @property
    def chroma_endpoint(self) -> str:
        return f"http://{self.chroma_host}:{self.chroma_port}"

    def collection_for(self, backend: EmbeddingBackend | str) -> str:
        """Return the collection populated by *backend*.

        Each embedding backend owns its own collection so vectors of
        different dimensionality never share one.
        """
        value = getattr(backend, "value", backend)
        if value == "cloud":
            return self.collection_name
        if value == "local":
            return f"{self.collection_name}{self.local_collection_suffix}"
        raise ValueError(f"Unknown embedding backend: {backend!r}")


# Singleton: import `settings` wherever needed.
settings = Settings()
