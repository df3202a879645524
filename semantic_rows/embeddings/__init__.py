"""Embedding sources for turning row text into vectors."""

from semantic_rows.embeddings.openai_client import (
    OpenAIEmbeddingSource,
    get_openai_client,
    suppress_http_logging,
)
from semantic_rows.embeddings.source import EmbeddingSource, embed_texts

__all__ = [
    "EmbeddingSource",
    "embed_texts",
    "OpenAIEmbeddingSource",
    "get_openai_client",
    "suppress_http_logging",
]
