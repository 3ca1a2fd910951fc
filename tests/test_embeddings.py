from __future__ import annotations

import math

import pytest

from incidentrag.embeddings import service
from incidentrag.embeddings.service import (
    EmbeddingConfig,
    EmbeddingModelError,
    HashEmbeddingBackend,
    SentenceEmbeddingBackend,
    build_embedding_backend,
)


def test_hash_embedding_is_deterministic_and_normalized():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=16))
    first = backend.embed_query("fallo de comunicación")
    second = backend.embed_texts(["fallo de comunicación"])[0]
    assert first == second
    assert len(first) == 16
    assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0, rel_tol=1e-9)


def test_different_texts_produce_different_vectors():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=16))
    assert backend.embed_query("bomba") != backend.embed_query("válvula")


class FakeHuggingFaceEmbeddings:
    def __init__(self, *, model_name, model_kwargs, encode_kwargs, cache_folder):
        self.model_name = model_name

    def embed_documents(self, texts):
        return [[3.0, 4.0] for _ in texts]

    def embed_query(self, text):
        return [0.0, 2.0]


def test_sentence_backend_normalizes_model_vectors(monkeypatch):
    monkeypatch.setattr(service, "HuggingFaceEmbeddings", FakeHuggingFaceEmbeddings)
    backend = SentenceEmbeddingBackend(EmbeddingConfig(dim=2, use_model=True))
    assert backend.embed_texts([]) == []
    assert backend.embed_texts(["a", "b"]) == [(0.6, 0.8), (0.6, 0.8)]
    assert backend.embed_query("texto") == (0.0, 1.0)


def test_sentence_backend_rejects_wrong_dimension(monkeypatch):
    monkeypatch.setattr(service, "HuggingFaceEmbeddings", FakeHuggingFaceEmbeddings)
    backend = SentenceEmbeddingBackend(EmbeddingConfig(dim=8, use_model=True))
    with pytest.raises(ValueError, match="dimension mismatch"):
        backend.embed_query("texto")


def test_model_load_failure_is_raised_not_replaced_by_hash_vectors(monkeypatch):
    def failing_model(**kwargs):
        raise ImportError("Could not import sentence_transformers")

    monkeypatch.setattr(service, "HuggingFaceEmbeddings", failing_model)
    config = EmbeddingConfig(model="no-such-org/no-such-model", dim=8, use_model=True)
    with pytest.raises(EmbeddingModelError):
        SentenceEmbeddingBackend(config)
    with pytest.raises(EmbeddingModelError):
        build_embedding_backend(config)


def test_factory_defaults_to_hash_backend():
    backend = build_embedding_backend(EmbeddingConfig(dim=12))
    assert isinstance(backend, HashEmbeddingBackend)
    assert backend.dim == 12
