"""Heuristic field extraction from work-report text."""

from __future__ import annotations

from typing import Callable, Optional, Tuple, TypeVar
from uuid import NAMESPACE_URL, uuid5

from incidentrag.extraction import fields
from incidentrag.extraction.hours import extract_hours_summary
from incidentrag.extraction.rules import (
    CATEGORY_RULES,
    ENVIRONMENT_RULES,
    SERVICE_VOCABULARY,
    SEVERITY_RULES,
    STATUS_RULES,
    SUBCATEGORY_RULES,
    SYSTEM_VOCABULARY,
    collect_vocabulary,
    first_match,
)
from incidentrag.extraction.worklog import extract_work_entries
from incidentrag.metrics.observability import get_logger
from incidentrag.models import IncidentDocument

T = TypeVar("T")

DEFAULT_CATEGORY = "General"
DEFAULT_ENVIRONMENT = "production"


def incident_id_for(incident_number: str) -> str:
    """Stable internal identifier so re-ingestion of a number keeps its id."""

    return uuid5(NAMESPACE_URL, f"incident:{incident_number}").hex


class _ExtractionRun:
    """Holds the inputs of one ``extract`` call; built fresh for every document."""

    def __init__(self, text: str, filename_hint: str, logger) -> None:
        self.text = text or ""
        self.filename_hint = filename_hint or ""
        self._logger = logger

    def guard(self, field_name: str, func: Callable[[], T], default: T) -> T:
        try:
            value = func()
        except Exception as exc:  # noqa: BLE001 - extraction is advisory
            self._logger.warning(
                "extraction.field_failed",
                field=field_name,
                filename=self.filename_hint,
                error=str(exc),
            )
            return default
        return default if value is None else value

    def build(self) -> IncidentDocument:
        text = self.text
        incident_number = self.guard(
            "incident_number",
            lambda: fields.extract_incident_number(self.filename_hint),
            None,
        ) or fields.generate_incident_number()

        severity = self.guard("severity", lambda: first_match(SEVERITY_RULES, text, "low"), "low")
        status = self.guard("status", lambda: first_match(STATUS_RULES, text, "open"), "open")
        category = self.guard("category", lambda: first_match(CATEGORY_RULES, text, None), DEFAULT_CATEGORY)
        subcategory = self.guard("subcategory", lambda: first_match(SUBCATEGORY_RULES, text, None), None)
        environment = self.guard(
            "environment",
            lambda: first_match(ENVIRONMENT_RULES, text, DEFAULT_ENVIRONMENT),
            DEFAULT_ENVIRONMENT,
        )
        client = self.guard("client", lambda: fields.extract_client(text), None)
        affected_systems = self.guard("affected_systems", lambda: collect_vocabulary(SYSTEM_VOCABULARY, text), ())
        affected_services = self.guard(
            "affected_services", lambda: collect_vocabulary(SERVICE_VOCABULARY, text), ()
        )

        return IncidentDocument(
            id=incident_id_for(incident_number),
            incident_number=incident_number,
            title=self.guard("title", lambda: fields.extract_title(text), None) or self.filename_hint,
            severity=severity,
            status=status,
            category=category,
            environment=environment,
            summary=self.guard("summary", lambda: fields.extract_summary(text), ""),
            description=text,
            reference=self.guard("reference", lambda: fields.extract_reference(text), None),
            detected_at=self.guard("detected_at", lambda: fields.extract_date(text), None),
            subcategory=subcategory,
            client=client,
            project=self.guard("project", lambda: fields.extract_project(text), None),
            contract=self.guard("contract", lambda: fields.extract_contract(text), None),
            problem_description=self.guard(
                "problem_description", lambda: fields.extract_problem_description(text), None
            ),
            root_cause=self.guard("root_cause", lambda: fields.extract_root_cause(text), None),
            impact=self.guard("impact", lambda: fields.extract_impact(text), None),
            participants=self.guard("participants", lambda: fields.extract_participants(text), ()),
            work_entries=self.guard("work_entries", lambda: extract_work_entries(text), ()),
            resolution_steps=self.guard("resolution_steps", lambda: fields.extract_resolution_steps(text), ()),
            preventive_actions=self.guard(
                "preventive_actions", lambda: fields.extract_preventive_actions(text), ()
            ),
            hours_summary=self.guard("hours_summary", lambda: extract_hours_summary(text), None),
            billing_info=self.guard("billing_info", lambda: fields.extract_billing_info(text), None),
            reported_by=self.guard("reported_by", lambda: fields.extract_reported_by(text), None) or "system",
            assigned_to=self.guard("assigned_to", lambda: fields.extract_assigned_to(text), None),
            affected_systems=affected_systems,
            affected_services=affected_services,
            tags=self.guard(
                "tags",
                lambda: build_tags(
                    severity=severity,
                    category=first_match(CATEGORY_RULES, text, None),
                    subcategory=subcategory,
                    environment=environment,
                    systems=affected_systems,
                    services=affected_services,
                    client=client,
                ),
                (),
            ),
        )


def build_tags(
    *,
    severity: str,
    category: Optional[str],
    subcategory: Optional[str],
    environment: Optional[str],
    systems: Tuple[str, ...],
    services: Tuple[str, ...],
    client: Optional[str],
) -> Tuple[str, ...]:
    candidates = [severity, category, subcategory, environment, *systems, *services]
    if client:
        candidates.append(client[:30])
    tags: list[str] = []
    for tag in candidates:
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


class IncidentExtractor:
    """Turns raw report text into an :class:`IncidentDocument`. Never raises."""

    _logger = get_logger("extraction")

    def extract(self, text: str, filename_hint: str = "") -> IncidentDocument:
        return _ExtractionRun(text, filename_hint, self._logger).build()


def extract(text: str, filename_hint: str = "") -> IncidentDocument:
    """Convenience helper for tests and ad-hoc extraction."""

    return IncidentExtractor().extract(text, filename_hint)


__all__ = ["DEFAULT_CATEGORY", "DEFAULT_ENVIRONMENT", "IncidentExtractor", "build_tags", "extract", "incident_id_for"]
