"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding service (model and dimensionality are pinned in ingestion.embedder)
    openai_api_key: str = Field(default="", description="OpenAI API key used for embeddings")
    openai_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible embedding endpoint. "
            "Leave empty to use OpenAI cloud."
        ),
    )
    embedding_request_timeout: float = Field(default=60.0, description="Seconds per embedding call")

    # Vector store
    vector_store_backend: str = Field(default="chroma", description="'chroma' or 'memory'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    index_name: str = Field(default="oms-knowledge-base", description="Outer index holding all namespaces")
    catalog_namespace: str = Field(default="publishers", description="Shared cross-user namespace")

    # Uploads
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, description="Largest accepted upload")

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Retrieval
    retrieval_top_k: int = 5
    retrieval_max_tokens: int = 2000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton: import `settings` wherever needed.
settings = Settings()
