"""Work-performed section parsing: day entries, equipment codes and action labels."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from incidentrag.extraction.rules import ACTION_RULES, STATUS_RULES, first_match, first_pattern
from incidentrag.models import WorkEntry

MAX_WORK_ENTRIES = 30
MAX_EQUIPMENT = 10

_WORKS_SECTION = re.compile(r"TRABAJOS REALIZADOS[\s\S]{0,8000}", re.I)
_MONTHS = "enero|febrero|marzo|abril|mayo|junio|julio|agosto|septiembre|octubre|noviembre|diciembre"
_WEEKDAYS = "lunes|martes|miércoles|jueves|viernes|sábado|domingo"
_DAY_HEADER = re.compile(
    rf"(?:^|\n)(?:{_WEEKDAYS}|\d{{1,2}}\s+de\s+(?:{_MONTHS}))(?:\s+de\s+\d{{4}})?",
    re.I,
)
_WEEKDAY_PREFIX = re.compile(rf"^(?:{_WEEKDAYS})\s*", re.I)
_BULLET = re.compile(r"[•▸\-*]\s*([^\n]+)")
_DURATION = re.compile(r"(\d+(?:\.\d+)?)\s*(?:horas?|h|hours?)\b", re.I)

EQUIPMENT_PATTERNS: Tuple[re.Pattern[str], ...] = (
    # valves: GJK07AA003, YS22824
    re.compile(r"\b[A-Z]{2,3}\d{2,4}[A-Z]{2,3}\d{3}\b"),
    re.compile(r"\bYS\d{5}\b", re.I),
    re.compile(r"\bGJK\d{2}[A-Z]{2}\d{3}\b", re.I),
    # tanks: T1264, D10250
    re.compile(r"\b[TD]\d{4,5}\b"),
    # pumps: PWS3
    re.compile(r"\bP\w{2,3}\d{1,2}\b"),
    # PLCs: CLX1
    re.compile(r"\bCLX\d\b", re.I),
    re.compile(r"\b(?:server|PC)\s*\d{3}\b", re.I),
    re.compile(r"\blínea?\s*\w+", re.I),
    re.compile(r"\bdestilador\s*\w+", re.I),
    re.compile(r"\bCIP\s*\w*", re.I),
    re.compile(r"\bSCADA\d?\b", re.I),
)


def extract_equipment(text: str) -> Tuple[str, ...]:
    found: List[str] = []
    for pattern in EQUIPMENT_PATTERNS:
        for match in pattern.finditer(text):
            code = match.group().upper()
            if len(code) > 2 and code not in found:
                found.append(code)
    return tuple(found[:MAX_EQUIPMENT])


def infer_action(text: str) -> Optional[str]:
    return first_pattern(ACTION_RULES, text)


def extract_duration(text: str) -> Optional[str]:
    match = _DURATION.search(text)
    return f"{match.group(1)}h" if match else None


def _entry_status(text: str) -> str:
    return first_match(STATUS_RULES, text, "open")


def parse_day_entry(text: str, day_header: str) -> Optional[WorkEntry]:
    if not text or len(text) < 20:
        return None

    title: Optional[str] = None
    description = text
    candidates = [line for line in text.split("\n") if len(line.strip()) > 5]
    for line in candidates[:5]:
        clean = line.strip()
        if 10 < len(clean) < 200 and not re.match(r"^se\s+", clean, re.I):
            title = clean
            description = text.replace(line, "", 1).strip()
            break

    equipment = extract_equipment(text)
    label = _WEEKDAY_PREFIX.sub("", day_header).strip()
    return WorkEntry(
        date=label or day_header,
        title=title,
        description=description[:1000],
        equipment=equipment,
        action=infer_action(text),
        status=_entry_status(text),
        duration=extract_duration(text),
    )


def extract_works_from_bullets(text: str) -> List[WorkEntry]:
    works: List[WorkEntry] = []
    for match in _BULLET.finditer(text):
        description = match.group(1).strip()
        if len(description) > 10:
            works.append(
                WorkEntry(
                    description=description[:500],
                    equipment=extract_equipment(description),
                    action=infer_action(description),
                    status=_entry_status(description),
                )
            )
    return works[:MAX_WORK_ENTRIES]


def extract_work_entries(text: str) -> Tuple[WorkEntry, ...]:
    """Split the "TRABAJOS REALIZADOS" section on day headers and parse each block."""

    section_match = _WORKS_SECTION.search(text)
    if not section_match:
        return ()
    section = section_match.group()

    headers = list(_DAY_HEADER.finditer(section))
    if not headers:
        return tuple(extract_works_from_bullets(section))

    works: List[WorkEntry] = []
    for position, header in enumerate(headers):
        if position + 1 < len(headers):
            body = section[header.end() : headers[position + 1].start()]
        else:
            body = section[header.end() :].split("RESUMEN")[0]
        entry = parse_day_entry(body.strip(), header.group().strip())
        if entry is not None:
            works.append(entry)
    return tuple(works[:MAX_WORK_ENTRIES])


__all__ = [
    "EQUIPMENT_PATTERNS",
    "MAX_WORK_ENTRIES",
    "extract_duration",
    "extract_equipment",
    "extract_work_entries",
    "extract_works_from_bullets",
    "infer_action",
    "parse_day_entry",
]
