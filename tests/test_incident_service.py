from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import pytest

from incidentrag.embeddings.service import EmbeddingConfig, HashEmbeddingBackend, Vector
from incidentrag.embeddings.store import ChromaChunkIndex
from incidentrag.extraction import fields
from incidentrag.models import SearchFilters
from incidentrag.services import incidents
from incidentrag.services.incidents import IncidentNotFoundError, IncidentService, render_incident_text
from incidentrag.storage import IncidentStore

SECOND_REPORT = """INCIDENCIA EN SERVIDOR DE BACKUP
Fecha: 02/04/2024
Se detecta un fallo crítico en el servidor de backup durante la copia nocturna.
El equipo de soporte reinicia el servicio y valida la copia completa del día.
"""


class FlakyEmbedder(HashEmbeddingBackend):
    """Hash embedder that fails its next ``embed_texts`` call when armed."""

    def __init__(self) -> None:
        super().__init__(EmbeddingConfig(dim=32))
        self.fail_next = False

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Vector]:
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("embedding service unavailable")
        return super().embed_texts(texts)


@pytest.mark.asyncio
async def test_ingest_and_search(incident_service: IncidentService, report_text: str) -> None:
    await incident_service.initialize()
    try:
        document = await incident_service.ingest(report_text, "AC2405.pdf")

        results = await incident_service.search("fallo de comunicación del PLC")

        assert [result.document.id for result in results] == [document.id]
        assert all(hit.document_id == document.id for hit in results[0].hits)
        assert results[0].score == pytest.approx(sum(hit.score for hit in results[0].hits))
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_reingest_replaces_existing_record(
    incident_service: IncidentService,
    incident_store: IncidentStore,
    chunk_index: ChromaChunkIndex,
    report_text: str,
) -> None:
    await incident_service.initialize()
    try:
        first = await incident_service.ingest(report_text, "AC2405.pdf")
        chunk_count = chunk_index.count()

        second = await incident_service.ingest(report_text, "AC2405.pdf")

        assert second.id == first.id
        assert second == first
        assert chunk_index.count() == chunk_count
        assert [document.id for document in await incident_service.get_all()] == [first.id]
        assert len(await incident_store.list_all()) == 1
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_delete_removes_record_and_chunks(
    incident_service: IncidentService,
    chunk_index: ChromaChunkIndex,
    report_text: str,
) -> None:
    await incident_service.initialize()
    try:
        document = await incident_service.ingest(report_text, "AC2405.pdf")
        other = await incident_service.ingest(SECOND_REPORT, "AC2406.pdf")

        deleted = await incident_service.delete(document.id)

        assert deleted.id == document.id
        assert await incident_service.get_by_id(document.id) is None
        results = await incident_service.search("fallo de comunicación del PLC")
        assert [result.document.id for result in results] == [other.id]
        with pytest.raises(IncidentNotFoundError):
            await incident_service.delete(document.id)
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_search_with_filters(incident_service: IncidentService, report_text: str) -> None:
    await incident_service.initialize()
    try:
        await incident_service.ingest(report_text, "AC2405.pdf")
        critical = await incident_service.ingest(SECOND_REPORT, "AC2406.pdf")

        results = await incident_service.search("servidor", SearchFilters(severity=("critical",)))

        assert critical.severity == "critical"
        assert [result.document.id for result in results] == [critical.id]
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_records_survive_restart(
    incident_service: IncidentService,
    incident_store: IncidentStore,
    chunk_index: ChromaChunkIndex,
    report_text: str,
) -> None:
    await incident_service.initialize()
    document = await incident_service.ingest(report_text, "AC2405.pdf")

    restarted = IncidentService(
        store=incident_store,
        index=chunk_index,
        embedder=HashEmbeddingBackend(EmbeddingConfig(dim=32)),
    )
    await restarted.initialize()
    try:
        assert await restarted.get_by_id(document.id) == document
        assert [item.incident_number for item in await restarted.get_all()] == ["AC2405"]
    finally:
        await restarted.close()


@pytest.mark.asyncio
async def test_stats(incident_service: IncidentService, chunk_index: ChromaChunkIndex, report_text: str) -> None:
    await incident_service.initialize()
    try:
        await incident_service.ingest(report_text, "AC2405.pdf")
        await incident_service.ingest(SECOND_REPORT, "AC2406.pdf")

        stats = await incident_service.stats()

        assert stats.total_incidents == 2
        assert stats.total_chunks == chunk_index.count()
        assert stats.total_hours == 21
        assert stats.normal_hours == 19
        assert stats.night_hours == 2
        assert stats.by_client == {"PPG Ibérica": 1, "Sin cliente": 1}
        assert stats.by_severity == {"low": 1, "critical": 1}
        assert ("Carlos Fernández", 1) in stats.top_participants
        assert [document.incident_number for document in stats.recent] == ["AC2406", "AC2405"]
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_empty_text_indexes_rendered_record(
    incident_service: IncidentService,
    chunk_index: ChromaChunkIndex,
) -> None:
    await incident_service.initialize()
    try:
        document = await incident_service.ingest("", "AC7.pdf")

        assert document.incident_number == "AC7"
        assert chunk_index.count() >= 1
        assert "Número de incidencia: AC7" in render_incident_text(document)
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_ingest_file_and_folder(tmp_path: Path, incident_service: IncidentService, report_text: str) -> None:
    folder = tmp_path / "actas"
    folder.mkdir()
    (folder / "AC2405.txt").write_text(report_text, encoding="utf-8")
    (folder / "AC2406.txt").write_text(SECOND_REPORT, encoding="utf-8")
    (folder / "AC2407.txt").write_text("", encoding="utf-8")
    (folder / "notas.md").write_text("# ignorado", encoding="utf-8")

    await incident_service.initialize()
    try:
        results = await incident_service.ingest_folder(folder)

        assert [Path(result.path).name for result in results] == ["AC2405.txt", "AC2406.txt", "AC2407.txt"]
        assert [result.ok for result in results] == [True, True, False]
        assert results[0].incident is not None
        assert results[0].incident.incident_number == "AC2405"
        assert results[2].error

        single = await incident_service.ingest_file(folder / "AC2406.txt")
        assert single.incident_number == "AC2406"
        assert len(await incident_service.get_all()) == 2
    finally:
        await incident_service.close()


@pytest.mark.asyncio
async def test_failed_reingest_propagates_and_next_ingest_repairs(
    incident_store: IncidentStore,
    chunk_index: ChromaChunkIndex,
    report_text: str,
    caplog: pytest.LogCaptureFixture,
) -> None:
    embedder = FlakyEmbedder()
    service = IncidentService(store=incident_store, index=chunk_index, embedder=embedder)
    await service.initialize()
    try:
        first = await service.ingest(report_text, "AC2405.pdf")
        chunk_count = chunk_index.count()
        assert chunk_count > 0

        embedder.fail_next = True
        with caplog.at_level(logging.ERROR), pytest.raises(RuntimeError, match="unavailable"):
            await service.ingest(report_text, "AC2405.pdf")

        assert any("ingestion.partial" in record.getMessage() for record in caplog.records)
        assert chunk_index.count() == 0
        assert await service.get_by_id(first.id) == first

        repaired = await service.ingest(report_text, "AC2405.pdf")

        assert repaired == first
        assert chunk_index.count() == chunk_count
        assert len(await incident_store.list_all()) == 1
        results = await service.search("fallo de comunicación del PLC")
        assert [result.document.id for result in results] == [first.id]
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_generated_number_never_replaces_another_report(
    monkeypatch: pytest.MonkeyPatch,
    incident_service: IncidentService,
    report_text: str,
) -> None:
    draws = iter(["INC-2024-0042", "INC-2024-0042", "INC-2024-0043"])
    monkeypatch.setattr(fields, "generate_incident_number", lambda: next(draws))
    monkeypatch.setattr(incidents, "generate_incident_number", lambda: next(draws))
    await incident_service.initialize()
    try:
        first = await incident_service.ingest(report_text)
        second = await incident_service.ingest(SECOND_REPORT)

        assert first.incident_number == "INC-2024-0042"
        assert second.incident_number == "INC-2024-0043"
        assert second.id != first.id
        assert await incident_service.get_by_id(first.id) == first
        assert len(await incident_service.get_all()) == 2
    finally:
        await incident_service.close()
