"""Chroma-backed vector index for incident chunks."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.types import Documents, Embeddings as ChromaEmbeddings, IDs, Metadatas

from incidentrag.chunking.service import UNLABELED
from incidentrag.models import DocumentChunk, SearchFilters, SearchHit

TAG_KEY_PREFIX = "tag:"


class ChunkIndex(Protocol):
    """Protocol for chunk vector indexes."""

    def index_many(self, chunks: Sequence[DocumentChunk]) -> Sequence[str]:
        """Insert or replace chunks keyed by chunk id."""

    def search(
        self,
        vector: Sequence[float],
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> Sequence[SearchHit]:
        """Return up to ``limit`` hits ordered by similarity descending."""

    def delete_document(self, document_id: str) -> None:
        """Remove every chunk belonging to ``document_id``."""

    def count(self) -> int:
        """Return total number of stored chunks."""


def build_chroma_client(
    *,
    host: str | None = None,
    port: int | None = None,
    ssl: bool = False,
    persist_directory: str | Path | None = None,
) -> ClientAPI:
    if host:
        return chromadb.HttpClient(host=host, port=port or 8000, ssl=ssl)
    if persist_directory is not None:
        return chromadb.PersistentClient(path=str(persist_directory))
    return chromadb.EphemeralClient()


def build_where(filters: SearchFilters | None) -> Dict[str, Any] | None:
    """Translate a conjunctive filter into a Chroma ``where`` clause."""

    if filters is None or filters.is_empty():
        return None
    conditions: List[Dict[str, Any]] = []
    if filters.severity:
        conditions.append({"severity": {"$in": list(filters.severity)}})
    if filters.status:
        conditions.append({"status": {"$in": list(filters.status)}})
    if filters.category:
        conditions.append({"category": {"$eq": filters.category}})
    if filters.environment:
        conditions.append({"environment": {"$eq": filters.environment}})
    if filters.tags:
        tag_conditions = [{f"{TAG_KEY_PREFIX}{tag}": {"$eq": True}} for tag in filters.tags]
        conditions.append(tag_conditions[0] if len(tag_conditions) == 1 else {"$or": tag_conditions})
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


class ChromaChunkIndex:
    """Cosine-space Chroma collection keyed by chunk id."""

    def __init__(
        self,
        collection_name: str = "incident-chunks",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        self._client = client or build_chroma_client(persist_directory=persist_directory)
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def index(self, chunk: DocumentChunk) -> str:
        return self.index_many([chunk])[0]

    def index_many(self, chunks: Sequence[DocumentChunk]) -> Sequence[str]:
        if not chunks:
            return []
        missing = [chunk.chunk_id for chunk in chunks if not chunk.embedding]
        if missing:
            raise ValueError(f"Chunks without embeddings cannot be indexed: {missing}")
        ids: IDs = [chunk.chunk_id for chunk in chunks]
        documents: Documents = [chunk.text for chunk in chunks]
        metadatas: Metadatas = [self._serialize_chunk(chunk) for chunk in chunks]
        vectors: ChromaEmbeddings = [list(chunk.embedding) for chunk in chunks]
        self._collection.upsert(ids=ids, documents=documents, embeddings=vectors, metadatas=metadatas)
        return list(ids)

    def search(
        self,
        vector: Sequence[float],
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> Sequence[SearchHit]:
        if limit <= 0:
            return []
        total = self.count()
        if total == 0:
            return []
        results = self._collection.query(
            query_embeddings=[list(vector)],
            n_results=min(limit, total),
            where=build_where(filters),
            include=["documents", "metadatas", "distances"],
        )
        hits = self._deserialize_results(results)
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    def delete_document(self, document_id: str) -> None:
        self._collection.delete(where={"document_id": document_id})

    def count(self) -> int:
        return int(self._collection.count())

    def _serialize_chunk(self, chunk: DocumentChunk) -> MutableMapping[str, Any]:
        metadata: MutableMapping[str, Any] = {
            key: value for key, value in chunk.metadata.items() if isinstance(value, (str, int, float, bool))
        }
        tags = [str(tag) for tag in chunk.metadata.get("tags", ()) or ()]
        metadata.update(
            {
                "document_id": chunk.document_id,
                "chunk_index": chunk.index,
                "section": chunk.section,
                "tags": ",".join(tags),
            }
        )
        for tag in tags:
            metadata[f"{TAG_KEY_PREFIX}{tag}"] = True
        return metadata

    def _deserialize_results(self, results: Mapping[str, Any]) -> List[SearchHit]:
        ids = self._first(results.get("ids"))
        documents = self._first(results.get("documents"))
        metadatas = self._first(results.get("metadatas"))
        distances = self._first(results.get("distances"))
        hits: List[SearchHit] = []
        for position, chunk_id in enumerate(ids):
            metadata = metadatas[position] if position < len(metadatas) else {}
            metadata = metadata or {}
            distance = distances[position] if position < len(distances) else None
            score = _clamp(1.0 - float(distance)) if distance is not None else 0.0
            hits.append(
                SearchHit(
                    chunk_id=chunk_id,
                    document_id=str(metadata.get("document_id", "")),
                    text=documents[position] if position < len(documents) else "",
                    score=score,
                    section=str(metadata.get("section", UNLABELED)),
                    index=int(metadata.get("chunk_index", 0)),
                )
            )
        return hits

    @staticmethod
    def _first(value: object) -> List[Any]:
        if isinstance(value, list) and value:
            return list(value[0] or [])
        return []


__all__ = ["ChromaChunkIndex", "ChunkIndex", "TAG_KEY_PREFIX", "build_chroma_client", "build_where"]
