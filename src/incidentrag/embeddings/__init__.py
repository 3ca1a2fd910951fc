"""Embedding backends and the chunk vector index."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    EmbeddingModelError,
    HashEmbeddingBackend,
    SentenceEmbeddingBackend,
    build_embedding_backend,
)
from .store import ChromaChunkIndex, ChunkIndex, build_chroma_client, build_where

__all__ = [
    "ChromaChunkIndex",
    "ChunkIndex",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingModelError",
    "HashEmbeddingBackend",
    "SentenceEmbeddingBackend",
    "build_chroma_client",
    "build_embedding_backend",
    "build_where",
]
