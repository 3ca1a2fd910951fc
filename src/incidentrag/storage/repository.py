"""Repository and store for incident records.

``IncidentRepository`` works inside a caller-owned session, following the
repository pattern. ``IncidentStore`` opens one session per logical operation
for callers that do not manage sessions themselves.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from incidentrag.models import HoursSummary, IncidentDocument, Participant, WorkEntry
from incidentrag.storage.database import create_engine, create_session_maker, init_schema
from incidentrag.storage.models import IncidentRecord


def to_record(document: IncidentDocument) -> IncidentRecord:
    return IncidentRecord(
        id=document.id,
        incident_number=document.incident_number,
        title=document.title,
        severity=document.severity,
        status=document.status,
        category=document.category,
        environment=document.environment,
        summary=document.summary,
        description=document.description,
        reference=document.reference,
        detected_at=document.detected_at,
        subcategory=document.subcategory,
        client=document.client,
        project=document.project,
        contract=document.contract,
        problem_description=document.problem_description,
        root_cause=document.root_cause,
        impact=document.impact,
        participants=[asdict(participant) for participant in document.participants],
        work_entries=[_work_entry_to_json(entry) for entry in document.work_entries],
        resolution_steps=list(document.resolution_steps),
        preventive_actions=list(document.preventive_actions),
        hours_summary=asdict(document.hours_summary) if document.hours_summary else None,
        billing_info=document.billing_info,
        reported_by=document.reported_by,
        assigned_to=document.assigned_to,
        affected_systems=list(document.affected_systems),
        affected_services=list(document.affected_services),
        tags=list(document.tags),
    )


def _work_entry_to_json(entry: WorkEntry) -> dict[str, Any]:
    payload = asdict(entry)
    payload["equipment"] = list(entry.equipment)
    return payload


def to_document(record: IncidentRecord) -> IncidentDocument:
    hours = record.hours_summary
    return IncidentDocument(
        id=record.id,
        incident_number=record.incident_number,
        title=record.title,
        severity=record.severity,  # type: ignore[arg-type]
        status=record.status,  # type: ignore[arg-type]
        category=record.category,
        environment=record.environment,
        summary=record.summary,
        description=record.description,
        reference=record.reference,
        detected_at=record.detected_at,
        subcategory=record.subcategory,
        client=record.client,
        project=record.project,
        contract=record.contract,
        problem_description=record.problem_description,
        root_cause=record.root_cause,
        impact=record.impact,
        participants=tuple(Participant(**item) for item in record.participants or []),
        work_entries=tuple(
            WorkEntry(**{**item, "equipment": tuple(item.get("equipment") or ())})
            for item in record.work_entries or []
        ),
        resolution_steps=tuple(record.resolution_steps or ()),
        preventive_actions=tuple(record.preventive_actions or ()),
        hours_summary=HoursSummary(**hours) if hours else None,
        billing_info=record.billing_info,
        reported_by=record.reported_by,
        assigned_to=record.assigned_to,
        affected_systems=tuple(record.affected_systems or ()),
        affected_services=tuple(record.affected_services or ()),
        tags=tuple(record.tags or ()),
    )


class IncidentRepository:
    """Data access for :class:`IncidentRecord` rows."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def get(self, incident_id: str) -> Optional[IncidentRecord]:
        return await self.db_session.get(IncidentRecord, incident_id)

    async def get_by_number(self, incident_number: str) -> Optional[IncidentRecord]:
        stmt = select(IncidentRecord).where(IncidentRecord.incident_number == incident_number)
        result = await self.db_session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> Sequence[IncidentRecord]:
        stmt = select(IncidentRecord).order_by(IncidentRecord.created_at.desc(), IncidentRecord.incident_number)
        result = await self.db_session.execute(stmt)
        return result.scalars().all()

    async def add(self, document: IncidentDocument) -> IncidentRecord:
        record = to_record(document)
        self.db_session.add(record)
        await self.db_session.flush()
        return record

    async def delete(self, incident_id: str) -> bool:
        result = await self.db_session.execute(delete(IncidentRecord).where(IncidentRecord.id == incident_id))
        return bool(result.rowcount)


class IncidentStore:
    """Record store owning an async engine and its session factory."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_maker: async_sessionmaker[AsyncSession] = create_session_maker(engine)

    @classmethod
    def from_url(cls, database_url: str, *, echo: bool = False) -> "IncidentStore":
        return cls(create_engine(database_url, echo=echo))

    async def initialize(self) -> None:
        await init_schema(self._engine)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def get(self, incident_id: str) -> Optional[IncidentDocument]:
        async with self._session_maker() as session:
            record = await IncidentRepository(session).get(incident_id)
            return to_document(record) if record else None

    async def get_by_number(self, incident_number: str) -> Optional[IncidentDocument]:
        async with self._session_maker() as session:
            record = await IncidentRepository(session).get_by_number(incident_number)
            return to_document(record) if record else None

    async def list_all(self) -> List[IncidentDocument]:
        async with self._session_maker() as session:
            records = await IncidentRepository(session).list_all()
            return [to_document(record) for record in records]

    async def save(self, document: IncidentDocument) -> None:
        async with self._session_maker() as session:
            await IncidentRepository(session).add(document)
            await session.commit()

    async def delete(self, incident_id: str) -> bool:
        async with self._session_maker() as session:
            deleted = await IncidentRepository(session).delete(incident_id)
            await session.commit()
            return deleted


__all__ = ["IncidentRepository", "IncidentStore", "to_document", "to_record"]
