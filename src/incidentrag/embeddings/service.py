"""Embedding backends for the incident chunk index."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

LOGGER = logging.getLogger(__name__)

Vector = Tuple[float, ...]


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dim: int = 384
    use_model: bool = False
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour; every vector has ``dim`` entries."""

    @property
    def dim(self) -> int:
        """Dimension of produced vectors."""

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Vector]:
        """Return one vector per text, in input order."""

    def embed_query(self, text: str) -> Vector:
        """Return embedding vector for a query string."""


def _normalize(vector: Sequence[float]) -> Vector:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding used for testing and offline runs."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    @property
    def dim(self) -> int:
        return self._config.dim

    def _hash_to_vector(self, text: str) -> Vector:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Vector]:
        return [self._hash_to_vector(text) for text in texts]

    def embed_query(self, text: str) -> Vector:
        return self._hash_to_vector(text)


class EmbeddingModelError(RuntimeError):
    """Raised when the configured sentence-transformer model cannot be loaded."""


class SentenceEmbeddingBackend:
    """Sentence-transformer embeddings through LangChain's HuggingFace wrapper.

    A model that fails to load raises :class:`EmbeddingModelError`; vectors
    from another backend would not be comparable with an existing index.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig(use_model=True)
        model_kwargs = {"device": self._config.device} if self._config.device else {}
        try:
            self._client: LangChainEmbeddings = HuggingFaceEmbeddings(
                model_name=self._config.model,
                model_kwargs=model_kwargs,
                encode_kwargs={"normalize_embeddings": self._config.normalize},
                cache_folder=self._config.cache_folder,
            )
        except Exception as exc:
            LOGGER.error("Failed to load embedding model %s: %s", self._config.model, exc)
            raise EmbeddingModelError(f"Could not load embedding model {self._config.model}") from exc
        LOGGER.info("Loaded embedding model %s", self._config.model)

    @property
    def dim(self) -> int:
        return self._config.dim

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Vector]:
        if not texts:
            return []
        vectors = self._client.embed_documents(list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise ValueError("Mismatch between number of texts and embedding vectors")
        return [self._checked(vector) for vector in vectors]

    def embed_query(self, text: str) -> Vector:
        return self._checked(self._client.embed_query(text))

    def _checked(self, vector: List[float]) -> Vector:
        if len(vector) != self._config.dim:
            raise ValueError(
                f"Embedding dimension mismatch: configured={self._config.dim}, actual={len(vector)}"
            )
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)


def build_embedding_backend(config: EmbeddingConfig) -> EmbeddingBackend:
    if config.use_model:
        return SentenceEmbeddingBackend(config)
    return HashEmbeddingBackend(config)


__all__ = [
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingModelError",
    "HashEmbeddingBackend",
    "SentenceEmbeddingBackend",
    "Vector",
    "build_embedding_backend",
]
