"""Structured field extraction from work-report text."""

from .hours import TOTAL_RULES, extract_hours_summary
from .service import IncidentExtractor, extract, incident_id_for

__all__ = [
    "IncidentExtractor",
    "TOTAL_RULES",
    "extract",
    "extract_hours_summary",
    "incident_id_for",
]
