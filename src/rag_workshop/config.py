"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class PdfOptions(BaseModel):
    """Per-page clean-up for a PDF source, e.g. ``{"top_lines_to_delete": 1}``."""

    top_lines_to_delete: int = Field(default=0, ge=0)
    bottom_lines_to_delete: int = Field(default=0, ge=0)
    top_pages_to_skip: int = Field(default=0, ge=0)


class SourceSpec(BaseModel):
    """One document source ingested at start-up."""

    path: str
    format: Literal["text", "markdown", "pdf"] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    pdf: PdfOptions | None = None


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Chat model
    llm_provider: Literal["ollama", "openai"] = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    chat_model: str = Field(default="qwen2.5", description="Chat model identifier")
    chat_temperature: float = 0.0
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local servers)")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible API. Leave empty to use OpenAI cloud. "
            "Ollama exposes one at 'http://localhost:11434/v1'."
        ),
    )

    # Embedding
    embedding_provider: Literal["ollama", "huggingface"] = "ollama"
    embedding_model: str = "nomic-embed-text"
    embedding_dimensions: int = 768

    # Vector store
    vector_store_backend: Literal["memory", "chroma"] = "memory"
    vector_store_initialize_schema: bool = True
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "rag_workshop"

    # Retrieval
    search_top_k: int = 4
    rag_top_k: int = 5
    similarity_threshold: float = 0.0

    # Chunking
    chunk_size: int = 512
    chunk_overlap: int = 64
    chunk_length_unit: Literal["characters", "tokens"] = "tokens"

    # Services
    request_timeout_seconds: float = 60.0
    max_tool_iterations: int = 5
    memory_max_messages: int = 100
    safeguard_words: list[str] = Field(default_factory=lambda: ["avada kedavra"])

    # Ingestion at start-up
    ingest_on_startup: bool = False
    ingest_sources: list[SourceSpec] = Field(default_factory=list)

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("chat_temperature")
    @classmethod
    def _check_temperature(cls, value: float) -> float:
        if not 0.0 <= value <= 2.0:
            raise ValueError("chat_temperature must be within [0, 2]")
        return value

    @field_validator(
        "embedding_dimensions",
        "search_top_k",
        "rag_top_k",
        "chunk_size",
        "max_tool_iterations",
        "memory_max_messages",
    )
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("request_timeout_seconds")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        return value

    @field_validator("similarity_threshold")
    @classmethod
    def _check_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("similarity_threshold must be within [0, 1]")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @model_validator(mode="after")
    def _check_chunking(self) -> Settings:
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be >= 0 and < chunk_size ({self.chunk_size})"
            )
        return self


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler (no-op if one is already configured)."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


# Module-level settings; import `settings` wherever needed.
settings = Settings()
