"""Shared domain models used across the incident RAG pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Mapping, Sequence, Tuple, get_args

Severity = Literal["critical", "high", "medium", "low"]
IncidentStatus = Literal["open", "in_progress", "resolved", "closed"]

SEVERITIES: Tuple[str, ...] = get_args(Severity)
STATUSES: Tuple[str, ...] = get_args(IncidentStatus)


@dataclass(frozen=True)
class Participant:
    """Person involved in the reported work."""

    name: str
    role: str | None = None
    organization: str | None = None


@dataclass(frozen=True)
class WorkEntry:
    """One dated block of the "work performed" section."""

    description: str
    date: str | None = None
    title: str | None = None
    equipment: Tuple[str, ...] = ()
    action: str | None = None
    status: str | None = None
    duration: str | None = None


@dataclass(frozen=True)
class HoursSummary:
    """Reconciled breakdown of billable hours for one report."""

    normal: float = 0.0
    extended: float = 0.0
    night: float = 0.0
    travel: float = 0.0
    documentation: float = 0.0
    total: float = 0.0
    billing_info: str | None = None


@dataclass(frozen=True)
class IncidentDocument:
    """Structured record extracted from one work report."""

    id: str
    incident_number: str
    title: str
    severity: Severity = "low"
    status: IncidentStatus = "open"
    category: str = "General"
    environment: str = "production"
    summary: str = ""
    description: str = ""
    reference: str | None = None
    detected_at: date | None = None
    subcategory: str | None = None
    client: str | None = None
    project: str | None = None
    contract: str | None = None
    problem_description: str | None = None
    root_cause: str | None = None
    impact: str | None = None
    participants: Tuple[Participant, ...] = ()
    work_entries: Tuple[WorkEntry, ...] = ()
    resolution_steps: Tuple[str, ...] = ()
    preventive_actions: Tuple[str, ...] = ()
    hours_summary: HoursSummary | None = None
    billing_info: str | None = None
    reported_by: str = "system"
    assigned_to: str | None = None
    affected_systems: Tuple[str, ...] = ()
    affected_services: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DocumentChunk:
    """Section-labelled slice of a document ready for indexing."""

    chunk_id: str
    document_id: str
    index: int
    section: str
    text: str
    embedding: Tuple[float, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchFilters:
    """Conjunctive metadata predicate; empty values do not restrict."""

    severity: Sequence[str] = ()
    status: Sequence[str] = ()
    category: str | None = None
    environment: str | None = None
    tags: Sequence[str] = ()

    def is_empty(self) -> bool:
        return not (self.severity or self.status or self.category or self.environment or self.tags)


@dataclass(frozen=True)
class SearchHit:
    """Chunk returned from the vector index for one query."""

    chunk_id: str
    document_id: str
    text: str
    score: float
    section: str = "unlabeled"
    index: int = 0


@dataclass(frozen=True)
class AggregatedResult:
    """Document-level search result combining all of its matching chunks."""

    document: IncidentDocument
    hits: Sequence[SearchHit]
    score: float


@dataclass(frozen=True)
class Answer:
    """Generated answer grounded on aggregated search results."""

    text: str
    sources: Sequence[AggregatedResult]
    query_id: str
    latency_ms: float
    retrieval_ms: float | None = None
    generation_ms: float | None = None
    suggested_follow_up: Sequence[str] = ()
