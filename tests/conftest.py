from __future__ import annotations

from pathlib import Path
from uuid import uuid4

import chromadb
import pytest

from incidentrag.embeddings.service import EmbeddingConfig, HashEmbeddingBackend
from incidentrag.embeddings.store import ChromaChunkIndex
from incidentrag.services.incidents import IncidentService
from incidentrag.storage import IncidentStore

REPORT_TEXT = """ACTA DE INTERVENCIÓN
Cliente: PPG Ibérica
Proyecto: Renovación SCADA planta norte
Fecha: 15/03/2024
Estado: cerrado

Participantes:
• Carlos Fernández (Hexa Ingenieros)
• Ana López (Jefa de turno)
• Carlos Fernández (Hexa Ingenieros)

TRABAJOS REALIZADOS
12 de marzo de 2024
Revisión del autómata de la línea de envasado
Se revisa el PLC CLX1 y se soluciona el fallo de comunicación con el servidor.

RESUMEN DE HORAS
L 01/07 M 02/07 X 03/07 J 04/07 V 05/07 S 06/07
Horario Normal 1 0 2 8 8 19
Horario Noct-Festivo 0 0 0 0 0 2
"""


@pytest.fixture
def report_text() -> str:
    return REPORT_TEXT


@pytest.fixture
def chunk_index() -> ChromaChunkIndex:
    return ChromaChunkIndex(collection_name=f"test-{uuid4().hex[:12]}", client=chromadb.EphemeralClient())


@pytest.fixture
def incident_store(tmp_path: Path) -> IncidentStore:
    return IncidentStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'incidents.db'}")


@pytest.fixture
def incident_service(incident_store: IncidentStore, chunk_index: ChromaChunkIndex) -> IncidentService:
    return IncidentService(
        store=incident_store,
        index=chunk_index,
        embedder=HashEmbeddingBackend(EmbeddingConfig(dim=32)),
    )
