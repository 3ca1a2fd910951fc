from __future__ import annotations

from typing import Mapping, Sequence

import pytest

from incidentrag.embeddings.store import ChromaChunkIndex, build_where
from incidentrag.models import DocumentChunk, SearchFilters


def _chunk(
    doc_id: str,
    index: int,
    vector: Sequence[float],
    metadata: Mapping[str, object] | None = None,
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=f"{doc_id}-{index}",
        document_id=doc_id,
        index=index,
        section="DESCRIPCIÓN",
        text=f"chunk {index} of {doc_id}",
        embedding=tuple(vector),
        metadata=dict(metadata or {}),
    )


def test_search_orders_by_cosine_similarity(chunk_index: ChromaChunkIndex) -> None:
    chunk_index.index_many(
        [
            _chunk("a", 0, (0.9, 0.43589, 0.0)),
            _chunk("b", 0, (0.4, 0.91652, 0.0)),
            _chunk("c", 0, (0.7, 0.71414, 0.0)),
        ]
    )

    hits = chunk_index.search((1.0, 0.0, 0.0), limit=2)

    assert [hit.chunk_id for hit in hits] == ["a-0", "c-0"]
    assert hits[0].score == pytest.approx(0.9, abs=1e-3)
    assert hits[1].score == pytest.approx(0.7, abs=1e-3)
    assert hits[0].section == "DESCRIPCIÓN"
    assert hits[0].document_id == "a"


def test_filters_are_conjunctive(chunk_index: ChromaChunkIndex) -> None:
    chunk_index.index_many(
        [
            _chunk("a", 0, (1.0, 0.0, 0.0), {"severity": "critical", "environment": "production"}),
            _chunk("b", 0, (1.0, 0.1, 0.0), {"severity": "critical", "environment": "testing"}),
            _chunk("c", 0, (1.0, 0.2, 0.0), {"severity": "low", "environment": "production"}),
        ]
    )

    filters = SearchFilters(severity=("critical", "high"), environment="production")
    hits = chunk_index.search((1.0, 0.0, 0.0), filters, limit=10)

    assert [hit.document_id for hit in hits] == ["a"]


def test_tag_filter_matches_any_tag(chunk_index: ChromaChunkIndex) -> None:
    chunk_index.index_many(
        [
            _chunk("a", 0, (1.0, 0.0, 0.0), {"tags": ("Red", "SCADA")}),
            _chunk("b", 0, (1.0, 0.1, 0.0), {"tags": ("PLC",)}),
            _chunk("c", 0, (1.0, 0.2, 0.0), {"tags": ()}),
        ]
    )

    hits = chunk_index.search((1.0, 0.0, 0.0), SearchFilters(tags=("SCADA", "PLC")), limit=10)

    assert sorted(hit.document_id for hit in hits) == ["a", "b"]


def test_upsert_replaces_by_chunk_id(chunk_index: ChromaChunkIndex) -> None:
    chunk_index.index(_chunk("a", 0, (1.0, 0.0, 0.0)))
    chunk_index.index(_chunk("a", 0, (0.0, 1.0, 0.0)))

    assert chunk_index.count() == 1


def test_delete_document_removes_only_its_chunks(chunk_index: ChromaChunkIndex) -> None:
    chunk_index.index_many(
        [
            _chunk("a", 0, (1.0, 0.0, 0.0)),
            _chunk("a", 1, (0.9, 0.1, 0.0)),
            _chunk("b", 0, (0.0, 1.0, 0.0)),
        ]
    )

    chunk_index.delete_document("a")

    assert chunk_index.count() == 1
    hits = chunk_index.search((1.0, 0.0, 0.0), limit=10)
    assert [hit.document_id for hit in hits] == ["b"]


def test_chunk_without_embedding_is_rejected(chunk_index: ChromaChunkIndex) -> None:
    with pytest.raises(ValueError):
        chunk_index.index_many([_chunk("a", 0, ())])


def test_search_on_empty_index(chunk_index: ChromaChunkIndex) -> None:
    assert chunk_index.search((1.0, 0.0, 0.0), limit=5) == []


def test_build_where_translations() -> None:
    assert build_where(None) is None
    assert build_where(SearchFilters()) is None
    assert build_where(SearchFilters(category="Acta")) == {"category": {"$eq": "Acta"}}
    assert build_where(SearchFilters(tags=("PLC",))) == {"tag:PLC": {"$eq": True}}
    assert build_where(SearchFilters(severity=("high",), tags=("PLC", "Red"))) == {
        "$and": [
            {"severity": {"$in": ["high"]}},
            {"$or": [{"tag:PLC": {"$eq": True}}, {"tag:Red": {"$eq": True}}]},
        ]
    }
