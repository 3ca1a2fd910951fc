"""SQLAlchemy table for extracted incident records."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import JSON, Date, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from incidentrag.storage.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IncidentRecord(Base):
    """One row per incident number; list and nested fields are stored as JSON."""

    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    incident_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="low")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    environment: Mapped[str] = mapped_column(String(50), nullable=False, default="production")
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    detected_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String(100), nullable=True)
    client: Mapped[str | None] = mapped_column(String(200), nullable=True)
    project: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contract: Mapped[str | None] = mapped_column(String(100), nullable=True)
    problem_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    root_cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    impact: Mapped[str | None] = mapped_column(Text, nullable=True)
    participants: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    work_entries: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    resolution_steps: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    preventive_actions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    hours_summary: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    billing_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    reported_by: Mapped[str] = mapped_column(String(200), nullable=False, default="system")
    assigned_to: Mapped[str | None] = mapped_column(String(200), nullable=True)
    affected_systems: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    affected_services: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


__all__ = ["IncidentRecord"]
