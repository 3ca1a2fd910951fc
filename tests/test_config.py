from __future__ import annotations

from incidentrag.config import get_settings


def test_defaults_embedding_model_and_dim():
    settings = get_settings({})
    assert settings.embedding_model == "sentence-transformers/all-MiniLM-L6-v2"
    assert settings.embedding_dim == 384
    assert settings.use_model_embeddings is False


def test_chunking_and_search_defaults():
    settings = get_settings({})
    assert settings.chunk_size == 512
    assert settings.chunk_overlap == 50
    assert 1 <= settings.search_limit <= settings.max_search_limit


def test_override_does_not_touch_cached_settings():
    override = get_settings({"database_url": "sqlite+aiosqlite:///:memory:"})
    assert override.database_url == "sqlite+aiosqlite:///:memory:"
    assert get_settings().database_url != override.database_url


def test_allowed_extensions_from_comma_string():
    settings = get_settings({"allowed_extensions": ".pdf, .txt"})
    assert settings.allowed_extensions_tuple == (".pdf", ".txt")


def test_environment_prefix(monkeypatch):
    monkeypatch.setenv("INCIDENTRAG_SEARCH_LIMIT", "7")
    settings = get_settings({"environment": "test"})
    assert settings.search_limit == 7
    assert settings.is_test
