"""Single-field extractors for work-report text.

Each function returns ``None`` (or an empty tuple) when the field is not found;
defaults are applied by :class:`incidentrag.extraction.service.IncidentExtractor`.
"""

from __future__ import annotations

import random
import re
from datetime import date
from typing import Iterable, List, Optional, Pattern, Tuple

from incidentrag.extraction.rules import KNOWN_ORGANIZATIONS
from incidentrag.models import Participant

HEADER_WINDOW = 500
MAX_PARTICIPANTS = 15

_SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)

_NUMERIC_DATES = (
    re.compile(r"(?:fecha[\s:.-]*)(\d{1,2})[/-](\d{1,2})[/-](\d{4})", re.I),
    re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})"),
    re.compile(r"(?:fecha[\s:.-]*)(\d{1,2})[/-](\d{1,2})[/-](\d{2})\b", re.I),
)

_INCIDENT_NUMBER = re.compile(r"AC\d+[A-Z]?\d*[-_]?[A-Z]?\d*", re.I)

_REFERENCE_PATTERNS = (
    re.compile(r"(?:referencia|ref\.?)\s*[:.]?\s*([A-Z0-9-]+)", re.I),
    re.compile(r"(?:n[°o]?|número)\s*(?:de\s*)?(?:acta|incidencia)?\s*[:.]?\s*([A-Z0-9-]+)", re.I),
)
_CLIENT_PATTERN = re.compile(r"Cliente:\s*([^\n]+?)(?=\s*Proyecto:|\s*Trabajo:|\s*Contrato:|$)", re.I | re.M)
_PROJECT_PATTERNS = (
    re.compile(r"Proyecto:\s*(.+?)(?=\s*Trabajo|\s*Contrato|$)", re.I | re.M),
    re.compile(r"Proyecto:\s*([^\n]+)", re.I),
)
_CONTRACT_PATTERNS = (
    re.compile(r"(?:contrato|contract)[\s:.-]*(?:n[°o]?)?\s*([A-Z0-9-]+)", re.I),
    re.compile(r"(?:orden\s*de\s*trabajo)[\s:.-]*([A-Z0-9-]+)", re.I),
)
_PROBLEM_PATTERNS = (
    re.compile(r"(?:descripción|del problema|problema|problem)[\s:.-]*([^\n]{50,300})", re.I),
    re.compile(r"(?:se\s+(?:recibe|solicita|detecta|observa))([^\n]{50,200})", re.I),
)
_ROOT_CAUSE_PATTERNS = (
    re.compile(r"(?:causa\s*raíz|causa\s*root|origen|root\s*cause)[\s:.-]*([^\n]{10,200})", re.I),
    re.compile(r"(?:motivo|razón|reason)[\s:.-]*([^\n]{10,200})", re.I),
)
_IMPACT_PATTERNS = (re.compile(r"(?:impacto|impact|afectación|afectado)[\s:.-]*([^\n]{10,300})", re.I),)
_ASSIGNED_PATTERNS = (
    re.compile(r"(?:asignado|assigned|responsable|technician|ingeniero|soporte)[\s:.-]*([^\n]{3,50})", re.I),
    re.compile(r"(?:técnico|tecnico|tech)[\s:.-]*([^\n]{3,50})", re.I),
)
_REPORTED_PATTERNS = (
    re.compile(r"(?:reportado|reported|creado|created\s*by|autor|author)[\s:.-]*([^\n]{3,50})", re.I),
)
_BILLING_PATTERNS = (
    re.compile(r"(?:facturación|billing|facturar)[\s:.-]*([^\n]{10,200})", re.I),
)
_PREVENTIVE_PATTERN = re.compile(
    r"(?:prevenir|preventivo|prevention|acciones\s*preventivas?|mejora|mejoras)[\s:.-]*([^\n]{10,200})",
    re.I,
)
_RESOLUTION_KEYWORDS = (
    "resolución",
    "resolucion",
    "solución",
    "solucion",
    "steps",
    "acciones",
    "procedimiento",
    "actuación",
)
_PARTICIPANT_BULLET = re.compile(
    r"(?:•|▸|-|▪|⊙)\s*([A-ZÁÉÍÓÚÑ][a-záéíóúñ]+(?:\s+[A-ZÁÉÍÓÚÑ][a-záéíóúñ]+)+)\s*(?:\(([^)]+)\))?"
)


def _first_group(patterns: Iterable[Pattern[str]], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1)
    return None


def generate_incident_number(today: date | None = None) -> str:
    """Placeholder number for reports whose filename carries none."""

    year = (today or date.today()).year
    return f"INC-{year}-{random.randint(0, 9998):04d}"


def extract_incident_number(filename: str) -> Optional[str]:
    match = _INCIDENT_NUMBER.search(filename or "")
    return match.group().upper() if match else None


def _valid_date(day: int, month: int, year: int) -> Optional[date]:
    if 1 <= day <= 31 and 1 <= month <= 12 and 2000 < year < 2100:
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def extract_date(text: str) -> Optional[date]:
    """Date from the document header only; body dates are ignored."""

    header = text[:HEADER_WINDOW]
    for pattern in _NUMERIC_DATES:
        match = pattern.search(header)
        if not match:
            continue
        day, month, year_text = int(match.group(1)), int(match.group(2)), match.group(3)
        year = int(year_text) if len(year_text) == 4 else 2000 + int(year_text)
        parsed = _valid_date(day, month, year)
        if parsed is not None:
            return parsed

    for number, name in enumerate(_SPANISH_MONTHS, start=1):
        pattern = re.compile(rf"(?:fecha\s*(?:de\s*)?)?(\d{{1,2}})\s+de\s+{name}(?:\s+de\s+)?(\d{{4}})", re.I)
        match = pattern.search(header)
        if match:
            parsed = _valid_date(int(match.group(1)), number, int(match.group(2)))
            if parsed is not None:
                return parsed
    return None


def extract_reference(text: str) -> Optional[str]:
    for pattern in _REFERENCE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            reference = match.group(1).strip()
            if len(reference) < 30:
                return reference
    return None


def extract_client(text: str) -> Optional[str]:
    match = _CLIENT_PATTERN.search(text)
    if not match:
        return None
    client = match.group(1).replace(":", "")
    client = re.sub(r"^P{1,2}G\s+", "PPG ", client, flags=re.I).strip()
    if 2 < len(client) < 100:
        return client
    return None


def extract_project(text: str) -> Optional[str]:
    for pattern in _PROJECT_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            project = match.group(1).strip()
            if len(project) > 2 and not project.startswith("Trabajo"):
                return project[:150]
    return None


def extract_contract(text: str) -> Optional[str]:
    value = _first_group(_CONTRACT_PATTERNS, text)
    return value.strip()[:50] if value else None


def extract_problem_description(text: str) -> Optional[str]:
    value = _first_group(_PROBLEM_PATTERNS, text)
    return value.strip()[:500] if value else None


def extract_root_cause(text: str) -> Optional[str]:
    value = _first_group(_ROOT_CAUSE_PATTERNS, text)
    return value[:500].strip() if value else None


def extract_impact(text: str) -> Optional[str]:
    value = _first_group(_IMPACT_PATTERNS, text)
    return value[:500].strip() if value else None


def extract_assigned_to(text: str) -> Optional[str]:
    value = _first_group(_ASSIGNED_PATTERNS, text)
    return re.sub(r"[,:.]+$", "", value).strip() if value else None


def extract_reported_by(text: str) -> Optional[str]:
    value = _first_group(_REPORTED_PATTERNS, text)
    return re.sub(r"[,:.]+$", "", value).strip() if value else None


def extract_billing_info(text: str) -> Optional[str]:
    value = _first_group(_BILLING_PATTERNS, text)
    return value.strip()[:300] if value else None


def extract_title(text: str) -> Optional[str]:
    for line in text.split("\n"):
        clean = line.strip()
        if not 5 < len(clean) < 200:
            continue
        if ":" not in clean and len(clean) > 10 and not re.match(r"^\d+\s+\w+", clean):
            return clean[:200]
    return None


def extract_summary(text: str) -> str:
    lines = [line.strip() for line in text.split("\n") if len(line.strip()) > 20]
    return " ".join(lines[:3])[:500]


def extract_participants(text: str) -> Tuple[Participant, ...]:
    """Bulleted "Nombre Apellido (org or role)" lines, deduplicated by exact name."""

    participants: List[Participant] = []
    seen: set[str] = set()
    for line in text.split("\n"):
        for match in _PARTICIPANT_BULLET.finditer(line):
            name = match.group(1).strip()
            if len(name) <= 3 or name in seen:
                continue
            role: Optional[str] = None
            organization: Optional[str] = None
            detail = (match.group(2) or "").strip()
            if detail:
                if any(known in detail.lower() for known in KNOWN_ORGANIZATIONS):
                    organization = detail
                else:
                    role = detail
            seen.add(name)
            participants.append(Participant(name=name, role=role, organization=organization))
    return tuple(participants[:MAX_PARTICIPANTS])


def extract_resolution_steps(text: str) -> Tuple[str, ...]:
    steps: List[str] = []
    in_section = False
    for line in text.split("\n"):
        lowered = line.lower()
        if any(keyword in lowered for keyword in _RESOLUTION_KEYWORDS):
            in_section = True
            continue
        if in_section and line.strip():
            cleaned = re.sub(r"^[\d.)\-*]+\s*", "", line.strip())
            if 10 < len(cleaned) < 300:
                steps.append(cleaned[:300])
        if not line.strip() and steps:
            in_section = False
    return tuple(steps[:10])


def extract_preventive_actions(text: str) -> Tuple[str, ...]:
    actions = [
        match.group(1)[:200].strip()
        for match in _PREVENTIVE_PATTERN.finditer(text)
        if match.group(1) and len(match.group(1)) > 10
    ]
    return tuple(actions[:5])


__all__ = [
    "extract_assigned_to",
    "extract_billing_info",
    "extract_client",
    "extract_contract",
    "extract_date",
    "extract_impact",
    "extract_incident_number",
    "extract_participants",
    "extract_preventive_actions",
    "extract_problem_description",
    "extract_project",
    "extract_reference",
    "extract_reported_by",
    "extract_resolution_steps",
    "extract_root_cause",
    "extract_summary",
    "extract_title",
    "generate_incident_number",
]
