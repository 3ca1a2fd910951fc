"""Query-time retrieval: embed, search the chunk index, aggregate per document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Protocol, Sequence

from incidentrag.embeddings.service import EmbeddingBackend
from incidentrag.embeddings.store import ChunkIndex
from incidentrag.models import AggregatedResult, IncidentDocument, SearchFilters, SearchHit


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    limit: int = 10
    max_limit: int | None = 50


class Retriever(Protocol):
    """Retrieve relevant chunks for a query string."""

    def retrieve(
        self,
        query: str,
        *,
        filters: SearchFilters | None = None,
        limit: int | None = None,
    ) -> Sequence[SearchHit]:
        """Return chunk hits ordered by similarity descending."""


class IndexRetriever:
    """Retriever that embeds the query and searches a :class:`ChunkIndex`."""

    def __init__(
        self,
        embedder: EmbeddingBackend,
        index: ChunkIndex,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._config = config or RetrievalConfig()

    def effective_limit(self, limit: int | None) -> int:
        value = limit or self._config.limit
        if self._config.max_limit:
            value = min(value, self._config.max_limit)
        return max(1, value)

    def retrieve(
        self,
        query: str,
        *,
        filters: SearchFilters | None = None,
        limit: int | None = None,
    ) -> Sequence[SearchHit]:
        vector = self._embedder.embed_query(query)
        return self._index.search(vector, filters, self.effective_limit(limit))


def aggregate(
    hits: Sequence[SearchHit],
    records: Mapping[str, IncidentDocument],
) -> List[AggregatedResult]:
    """Group hits by document and rank documents by summed chunk score.

    Groups keep first-seen order before the stable sort, so ties preserve the
    order in which documents first appeared. Hits whose document is missing
    from ``records`` are stale and dropped.
    """

    groups: Dict[str, List[SearchHit]] = {}
    for hit in hits:
        groups.setdefault(hit.document_id, []).append(hit)

    results = [
        AggregatedResult(
            document=records[document_id],
            hits=tuple(group),
            score=sum(hit.score for hit in group),
        )
        for document_id, group in groups.items()
        if document_id in records
    ]
    results.sort(key=lambda result: result.score, reverse=True)
    return results


__all__ = ["IndexRetriever", "RetrievalConfig", "Retriever", "aggregate"]
