"""Incident ingestion and search orchestration."""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from incidentrag.chunking.service import Chunker, SectionChunker, TextChunk
from incidentrag.embeddings.service import EmbeddingBackend
from incidentrag.embeddings.store import ChunkIndex
from incidentrag.extraction.fields import extract_incident_number, generate_incident_number
from incidentrag.extraction.service import IncidentExtractor, incident_id_for
from incidentrag.ingestion.service import PdfTextLoader, TextLoaderProtocol
from incidentrag.metrics.observability import PipelineMetrics, TimedSection, get_logger
from incidentrag.models import SEVERITIES, AggregatedResult, DocumentChunk, IncidentDocument, SearchFilters
from incidentrag.retrieval.service import IndexRetriever, RetrievalConfig, aggregate
from incidentrag.storage.repository import IncidentStore

NO_CLIENT_LABEL = "Sin cliente"


class IncidentNotFoundError(RuntimeError):
    """Raised when an incident id is not present in the record store."""


@dataclass(frozen=True)
class FileIngestionResult:
    """Outcome of ingesting one file from a folder."""

    path: str
    incident: IncidentDocument | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class IncidentStats:
    """Corpus-level counts and hour totals."""

    total_incidents: int
    total_chunks: int
    total_hours: float
    normal_hours: float
    extended_hours: float
    night_hours: float
    travel_hours: float
    by_severity: Mapping[str, int] = field(default_factory=dict)
    by_status: Mapping[str, int] = field(default_factory=dict)
    by_category: Mapping[str, int] = field(default_factory=dict)
    by_client: Mapping[str, int] = field(default_factory=dict)
    top_participants: Sequence[Tuple[str, int]] = ()
    recent: Sequence[IncidentDocument] = ()


def render_incident_text(document: IncidentDocument) -> str:
    """Plain-text rendering of a record, indexed when a report has no body of its own."""

    detected = document.detected_at.isoformat() if document.detected_at else ""
    resolution = "\n".join(f"{number}. {step}" for number, step in enumerate(document.resolution_steps, start=1))
    preventive = "\n".join(f"{number}. {step}" for number, step in enumerate(document.preventive_actions, start=1))
    lines = [
        document.title,
        "",
        f"Número de incidencia: {document.incident_number}",
        f"Fecha: {detected}",
        f"Severidad: {document.severity}",
        f"Estado: {document.status}",
        f"Categoría: {document.category}",
        f"Entorno: {document.environment}",
        "",
        f"Resumen: {document.summary}",
        "",
        f"Descripción: {document.description}",
        "",
        f"Causa raíz: {document.root_cause or ''}",
        f"Impacto: {document.impact or ''}",
        "",
        f"Sistemas afectados: {', '.join(document.affected_systems)}",
        f"Servicios afectados: {', '.join(document.affected_services)}",
        "",
        "Pasos de resolución:",
        resolution,
        "",
        "Acciones preventivas:",
        preventive,
        "",
        f"Etiquetas: {', '.join(document.tags)}",
    ]
    return "\n".join(lines).strip()


def chunk_metadata(document: IncidentDocument) -> Dict[str, object]:
    metadata: Dict[str, object] = {
        "incident_number": document.incident_number,
        "severity": document.severity,
        "status": document.status,
        "category": document.category,
        "environment": document.environment,
        "tags": tuple(document.tags),
    }
    if document.client:
        metadata["client"] = document.client
    if document.detected_at:
        metadata["detected_at"] = document.detected_at.isoformat()
    return metadata


class IncidentService:
    """Write and read paths over the record store and the chunk index.

    Records are served from an in-memory cache keyed by id, filled on
    :meth:`initialize` and kept current by ingestion and deletion. Blocking
    embedding and index calls run in worker threads.
    """

    def __init__(
        self,
        *,
        store: IncidentStore,
        index: ChunkIndex,
        embedder: EmbeddingBackend,
        extractor: IncidentExtractor | None = None,
        chunker: Chunker | None = None,
        loader: TextLoaderProtocol | None = None,
        retrieval_config: RetrievalConfig | None = None,
    ) -> None:
        self._store = store
        self._index = index
        self._embedder = embedder
        self._extractor = extractor or IncidentExtractor()
        self._chunker = chunker or SectionChunker()
        self._loader = loader or PdfTextLoader()
        self._retriever = IndexRetriever(embedder, index, retrieval_config)
        self._cache: Dict[str, IncidentDocument] = {}
        self._logger = get_logger("incidents")

    async def initialize(self) -> None:
        await self._store.initialize()
        documents = await self._store.list_all()
        self._cache = {document.id: document for document in documents}
        self._refresh_gauges()
        self._logger.info("incidents.loaded", count=len(self._cache))

    async def ingest(self, text: str, filename_hint: str = "") -> IncidentDocument:
        """Extract, store and index one report, replacing any record with the same number."""

        start = time.perf_counter()
        with TimedSection(PipelineMetrics.observe_extraction):
            document = self._extractor.extract(text, filename_hint)
        if extract_incident_number(filename_hint) is None:
            document = await self._unique_placeholder(document)
        body = text if text and text.strip() else render_incident_text(document)
        chunks = self._chunker.chunk(body)

        existing = await self._find_by_number(document.incident_number)
        if existing is not None:
            self._logger.info(
                "ingestion.replace",
                incident_id=existing.id,
                incident_number=existing.incident_number,
            )
            await asyncio.to_thread(self._index.delete_document, existing.id)
            await self._store.delete(existing.id)
            self._cache.pop(existing.id, None)

        try:
            await self._store.save(document)
            self._cache[document.id] = document
            indexed = await self._embed_chunks(document, chunks)
            await asyncio.to_thread(self._index.index_many, indexed)
        except Exception as exc:
            self._logger.error(
                "ingestion.partial",
                incident_id=document.id,
                incident_number=document.incident_number,
                error=str(exc),
            )
            raise
        finally:
            self._refresh_gauges()

        duration = time.perf_counter() - start
        PipelineMetrics.observe_ingestion(duration, len(chunks))
        self._logger.info(
            "ingestion.complete",
            incident_id=document.id,
            incident_number=document.incident_number,
            filename=filename_hint,
            chunk_count=len(chunks),
            duration_seconds=duration,
        )
        return document

    async def ingest_file(self, path: Path) -> IncidentDocument:
        loaded = await asyncio.to_thread(self._loader.load, Path(path))
        return await self.ingest(loaded.text, loaded.filename)

    async def ingest_folder(self, directory: Path) -> List[FileIngestionResult]:
        """Ingest every supported file in ``directory``; one failure does not stop the rest."""

        results: List[FileIngestionResult] = []
        for path in sorted(Path(directory).iterdir()):
            if not path.is_file() or not self._loader.supports(path):
                continue
            try:
                document = await self.ingest_file(path)
            except Exception as exc:
                self._logger.warning("ingestion.file_failed", path=str(path), error=str(exc))
                results.append(FileIngestionResult(path=str(path), error=str(exc)))
                continue
            results.append(FileIngestionResult(path=str(path), incident=document))
        self._logger.info(
            "ingestion.folder_complete",
            directory=str(directory),
            succeeded=sum(1 for result in results if result.ok),
            failed=sum(1 for result in results if not result.ok),
        )
        return results

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
    ) -> List[AggregatedResult]:
        start = time.perf_counter()
        hits = await asyncio.to_thread(self._retriever.retrieve, query, filters=filters, limit=limit)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_retrieval(duration, len(hits), (hit.score for hit in hits))
        results = aggregate(hits, self._cache)
        self._logger.info(
            "search.complete",
            query=query,
            hit_count=len(hits),
            result_count=len(results),
            duration_seconds=duration,
        )
        return results

    async def get_all(self) -> List[IncidentDocument]:
        return sorted(self._cache.values(), key=lambda document: document.incident_number)

    async def get_by_id(self, incident_id: str) -> Optional[IncidentDocument]:
        document = self._cache.get(incident_id)
        if document is not None:
            return document
        document = await self._store.get(incident_id)
        if document is not None:
            self._cache[document.id] = document
        return document

    async def delete(self, incident_id: str) -> IncidentDocument:
        document = await self.get_by_id(incident_id)
        if document is None:
            raise IncidentNotFoundError(f"Incident not found: {incident_id}")
        await asyncio.to_thread(self._index.delete_document, incident_id)
        await self._store.delete(incident_id)
        self._cache.pop(incident_id, None)
        self._refresh_gauges()
        self._logger.info("incidents.deleted", incident_id=incident_id, incident_number=document.incident_number)
        return document

    async def stats(self) -> IncidentStats:
        documents = list(self._cache.values())
        total_chunks = await asyncio.to_thread(self._index.count)
        hours = [document.hours_summary for document in documents if document.hours_summary is not None]
        participants: Counter[str] = Counter(
            participant.name for document in documents for participant in document.participants
        )
        recent = sorted(
            documents,
            key=lambda document: document.detected_at or date.min,
            reverse=True,
        )[:5]
        return IncidentStats(
            total_incidents=len(documents),
            total_chunks=total_chunks,
            total_hours=sum(summary.total for summary in hours),
            normal_hours=sum(summary.normal for summary in hours),
            extended_hours=sum(summary.extended for summary in hours),
            night_hours=sum(summary.night for summary in hours),
            travel_hours=sum(summary.travel for summary in hours),
            by_severity=dict(Counter(document.severity for document in documents)),
            by_status=dict(Counter(document.status for document in documents)),
            by_category=dict(Counter(document.category for document in documents)),
            by_client=dict(Counter(document.client or NO_CLIENT_LABEL for document in documents)),
            top_participants=tuple(participants.most_common(5)),
            recent=tuple(recent),
        )

    async def close(self) -> None:
        await self._store.dispose()

    async def _find_by_number(self, incident_number: str) -> Optional[IncidentDocument]:
        for document in self._cache.values():
            if document.incident_number == incident_number:
                return document
        return await self._store.get_by_number(incident_number)

    async def _unique_placeholder(self, document: IncidentDocument) -> IncidentDocument:
        """Redraw a generated number until it names no stored report."""

        while await self._find_by_number(document.incident_number) is not None:
            self._logger.info("ingestion.placeholder_collision", incident_number=document.incident_number)
            number = generate_incident_number()
            document = replace(document, id=incident_id_for(number), incident_number=number)
        return document

    async def _embed_chunks(
        self,
        document: IncidentDocument,
        chunks: Sequence[TextChunk],
    ) -> List[DocumentChunk]:
        metadata = chunk_metadata(document)
        embedded: List[DocumentChunk] = []
        for chunk in chunks:
            vectors = await asyncio.to_thread(self._embedder.embed_texts, [chunk.text])
            embedded.append(
                DocumentChunk(
                    chunk_id=f"{document.id}-{chunk.index}",
                    document_id=document.id,
                    index=chunk.index,
                    section=chunk.section,
                    text=chunk.text,
                    embedding=tuple(vectors[0]),
                    metadata=metadata,
                )
            )
        return embedded

    def _refresh_gauges(self) -> None:
        counts = Counter(document.severity for document in self._cache.values())
        for severity in SEVERITIES:
            PipelineMetrics.incidents_by_severity.labels(severity=severity).set(counts.get(severity, 0))


__all__ = [
    "FileIngestionResult",
    "IncidentNotFoundError",
    "IncidentService",
    "IncidentStats",
    "chunk_metadata",
    "render_incident_text",
]
