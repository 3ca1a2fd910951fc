"""Pydantic models for the incident RAG API."""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from incidentrag.config import get_settings
from incidentrag.models import (
    AggregatedResult,
    HoursSummary,
    IncidentDocument,
    IncidentStatus,
    Participant,
    SearchFilters,
    SearchHit,
    Severity,
    WorkEntry,
)
from incidentrag.services.incidents import IncidentStats


class ParticipantModel(BaseModel):
    name: str
    role: Optional[str] = None
    organization: Optional[str] = None

    @classmethod
    def from_domain(cls, participant: Participant) -> "ParticipantModel":
        return cls(name=participant.name, role=participant.role, organization=participant.organization)


class WorkEntryModel(BaseModel):
    description: str
    date: Optional[str] = None
    title: Optional[str] = None
    equipment: List[str] = Field(default_factory=list)
    action: Optional[str] = None
    status: Optional[str] = None
    duration: Optional[str] = None

    @classmethod
    def from_domain(cls, entry: WorkEntry) -> "WorkEntryModel":
        return cls(
            description=entry.description,
            date=entry.date,
            title=entry.title,
            equipment=list(entry.equipment),
            action=entry.action,
            status=entry.status,
            duration=entry.duration,
        )


class HoursSummaryModel(BaseModel):
    normal: float = Field(..., ge=0)
    extended: float = Field(..., ge=0)
    night: float = Field(..., ge=0)
    travel: float = Field(..., ge=0)
    documentation: float = Field(..., ge=0)
    total: float = Field(..., ge=0)
    billing_info: Optional[str] = None

    @classmethod
    def from_domain(cls, summary: HoursSummary) -> "HoursSummaryModel":
        return cls(
            normal=summary.normal,
            extended=summary.extended,
            night=summary.night,
            travel=summary.travel,
            documentation=summary.documentation,
            total=summary.total,
            billing_info=summary.billing_info,
        )


class IncidentModel(BaseModel):
    id: str = Field(..., description="Internal identifier derived from the incident number")
    incident_number: str = Field(..., description="Human-assigned report number, unique across the corpus")
    title: str
    severity: Severity
    status: IncidentStatus
    category: str
    environment: str
    summary: str
    description: str
    reference: Optional[str] = None
    detected_at: Optional[date] = None
    subcategory: Optional[str] = None
    client: Optional[str] = None
    project: Optional[str] = None
    contract: Optional[str] = None
    problem_description: Optional[str] = None
    root_cause: Optional[str] = None
    impact: Optional[str] = None
    participants: List[ParticipantModel] = Field(default_factory=list)
    work_entries: List[WorkEntryModel] = Field(default_factory=list)
    resolution_steps: List[str] = Field(default_factory=list)
    preventive_actions: List[str] = Field(default_factory=list)
    hours_summary: Optional[HoursSummaryModel] = None
    billing_info: Optional[str] = None
    reported_by: str
    assigned_to: Optional[str] = None
    affected_systems: List[str] = Field(default_factory=list)
    affected_services: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, document: IncidentDocument) -> "IncidentModel":
        return cls(
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
            participants=[ParticipantModel.from_domain(item) for item in document.participants],
            work_entries=[WorkEntryModel.from_domain(item) for item in document.work_entries],
            resolution_steps=list(document.resolution_steps),
            preventive_actions=list(document.preventive_actions),
            hours_summary=HoursSummaryModel.from_domain(document.hours_summary) if document.hours_summary else None,
            billing_info=document.billing_info,
            reported_by=document.reported_by,
            assigned_to=document.assigned_to,
            affected_systems=list(document.affected_systems),
            affected_services=list(document.affected_services),
            tags=list(document.tags),
        )


class IncidentListResponse(BaseModel):
    incidents: List[IncidentModel]
    count: int = Field(..., ge=0)


class TextIngestionRequest(BaseModel):
    """Payload for ingesting the extracted text of one report."""

    text: str = Field(..., min_length=1, description="Plain text of the work report")
    filename: str = Field(default="", description="Original filename, used for the report number and title")


class UploadResponse(BaseModel):
    incidents: List[IncidentModel]


class SearchFiltersModel(BaseModel):
    severity: List[Severity] = Field(default_factory=list)
    status: List[IncidentStatus] = Field(default_factory=list)
    category: Optional[str] = None
    environment: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    def to_domain(self) -> SearchFilters:
        return SearchFilters(
            severity=tuple(self.severity),
            status=tuple(self.status),
            category=self.category or None,
            environment=self.environment or None,
            tags=tuple(self.tags),
        )


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Natural-language search text")
    filters: Optional[SearchFiltersModel] = None
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=get_settings().max_search_limit,
        description="Maximum number of chunk hits before aggregation",
    )


class SearchHitModel(BaseModel):
    chunk_id: str
    document_id: str
    text: str
    score: float = Field(..., ge=0.0, le=1.0)
    section: str
    index: int = Field(..., ge=0)

    @classmethod
    def from_domain(cls, hit: SearchHit) -> "SearchHitModel":
        return cls(
            chunk_id=hit.chunk_id,
            document_id=hit.document_id,
            text=hit.text,
            score=hit.score,
            section=hit.section,
            index=hit.index,
        )


class SearchResultModel(BaseModel):
    incident: IncidentModel
    hits: List[SearchHitModel]
    score: float

    @classmethod
    def from_domain(cls, result: AggregatedResult) -> "SearchResultModel":
        return cls(
            incident=IncidentModel.from_domain(result.document),
            hits=[SearchHitModel.from_domain(hit) for hit in result.hits],
            score=result.score,
        )


class SearchResponse(BaseModel):
    results: List[SearchResultModel]
    count: int = Field(..., ge=0)


class AgentQueryRequest(BaseModel):
    question: str = Field(..., min_length=1, description="End-user question to answer")
    filters: Optional[SearchFiltersModel] = None
    limit: Optional[int] = Field(default=None, ge=1, le=get_settings().max_search_limit)
    detailed: bool = Field(default=False, description="Ask for a longer, table-oriented answer")


class SourceModel(BaseModel):
    incident_id: str
    incident_number: str
    title: str
    client: Optional[str] = None
    score: float
    relevant_text: str


class AgentQueryResponse(BaseModel):
    query_id: str
    answer: str
    sources: List[SourceModel]
    suggested_follow_up: List[str] = Field(default_factory=list)
    latency_ms: float
    retrieval_ms: Optional[float] = None
    generation_ms: Optional[float] = None
    trace_id: Optional[str] = None


class ParticipantCountModel(BaseModel):
    name: str
    count: int


class StatsResponse(BaseModel):
    total_incidents: int
    total_chunks: int
    total_hours: float
    normal_hours: float
    extended_hours: float
    night_hours: float
    travel_hours: float
    by_severity: dict[str, int]
    by_status: dict[str, int]
    by_category: dict[str, int]
    by_client: dict[str, int]
    top_participants: List[ParticipantCountModel]
    recent: List[IncidentModel]

    @classmethod
    def from_domain(cls, stats: IncidentStats) -> "StatsResponse":
        top: Tuple[Tuple[str, int], ...] = tuple(stats.top_participants)
        return cls(
            total_incidents=stats.total_incidents,
            total_chunks=stats.total_chunks,
            total_hours=stats.total_hours,
            normal_hours=stats.normal_hours,
            extended_hours=stats.extended_hours,
            night_hours=stats.night_hours,
            travel_hours=stats.travel_hours,
            by_severity=dict(stats.by_severity),
            by_status=dict(stats.by_status),
            by_category=dict(stats.by_category),
            by_client=dict(stats.by_client),
            top_participants=[ParticipantCountModel(name=name, count=count) for name, count in top],
            recent=[IncidentModel.from_domain(document) for document in stats.recent],
        )
