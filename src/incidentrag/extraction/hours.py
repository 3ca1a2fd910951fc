"""Hours summary reconciliation.

Work reports encode billable hours in at least two incompatible layouts:

* a per-day table (``L 01/07 M 02/07 ...`` header followed by rows such as
  ``Horario Normal 1 0 2 8 8 19``) where the last number of each category row
  is that category's total, and
* per-participant lines with the columns glued together (``CFP67000``):
  letters for the initials, 2-5 digits of hours, then a 3 digit sub-unit.

The final total is then resolved by ``TOTAL_RULES``: the first rule producing a
positive value wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from incidentrag.models import HoursSummary

_SECTION_PATTERNS = (
    re.compile(
        r"(?:RESUMEN\s*DE\s*HORAS|HORAS\s*POR\s*FACTURAR|TOTAL\s*DE\s*HORAS|HORAS\s*NORMALES)[\s\S]{0,3000}",
        re.I,
    ),
    re.compile(r"Horas[\s\n]*Normales[\s\S]{0,1000}", re.I),
    re.compile(r"Total\s+de\s+horas[\s\S]{0,500}", re.I),
)
_MIN_SECTION_LENGTH = 50

_DAY_HEADER = re.compile(r"[MLXJVSND]?\s*\d{1,2}/\d{2}", re.I)
_NUMBER = re.compile(r"\d+")
_PARTICIPANT_ROW = re.compile(r"([A-Z]{2,5})(\d{2,5})(\d{3})")

_INVESTED_TOTAL = re.compile(r"Total\s+de\s+horas\s+invertidas[^:]*:\s*(\d+)\s*horas?", re.I)
_SECTION_TOTALS = (
    re.compile(r"Total[\s:.-]*(\d{2,5})[\s,.]*(\d{3})?", re.I),
    re.compile(r"TOTAL[\s:.-]*(\d{2,5})[\s,.]*(\d{3})?", re.I),
    re.compile(r"total[\s:.-]*(\d+[.,]?\d*)\s*horas?", re.I),
)
_STANDALONE_HOURS = re.compile(r"(\d+)\s*horas?\s*(?:normal|nocturna|total)", re.I)

_BILLING_PATTERNS = (
    re.compile(r"horas?\s*por\s*facturar[\s\S]{0,500}", re.I),
    re.compile(r"(\d+)\s*horas?\s*normal", re.I),
    re.compile(r"facturaci[óo]n[\s\S]{0,200}", re.I),
)

# (row keywords, field) pairs for the per-day table, checked on every line.
_TABLE_ROWS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("horario normal", "normal"), "normal"),
    (("horario extendido", "horario extended"), "extended"),
    (("horario noct", "noct-festivo", "nocturno"), "night"),
    (("desplazamiento",), "travel"),
)


@dataclass
class HoursContext:
    """Intermediate values shared by the total-resolution rules."""

    text: str
    section: str = ""
    normal: float = 0.0
    extended: float = 0.0
    night: float = 0.0
    travel: float = 0.0


@dataclass(frozen=True)
class TotalResolution:
    total: float
    normal: Optional[float] = None


HoursRule = Callable[[HoursContext], Optional[TotalResolution]]


def _leading_int(value: str) -> int:
    match = re.match(r"\d+", value)
    return int(match.group()) if match else 0


def find_hours_section(text: str) -> str:
    for pattern in _SECTION_PATTERNS:
        match = pattern.search(text)
        if match and len(match.group()) > _MIN_SECTION_LENGTH:
            return match.group()
    return ""


def read_day_table(context: HoursContext) -> None:
    """Fill category totals from a per-day table; later rows overwrite earlier ones."""

    if not _DAY_HEADER.search(context.section):
        return
    for line in context.section.split("\n"):
        lowered = line.lower()
        numbers = _NUMBER.findall(line)
        if not numbers:
            continue
        for keywords, field_name in _TABLE_ROWS:
            if any(keyword in lowered for keyword in keywords):
                setattr(context, field_name, float(int(numbers[-1])))


def read_participant_rows(context: HoursContext) -> None:
    total = sum(int(match.group(2)) for match in _PARTICIPANT_ROW.finditer(context.section))
    if total > 0:
        context.normal = float(total)


def explicit_invested_total(context: HoursContext) -> Optional[TotalResolution]:
    """Sum every "Total de horas invertidas (...): N horas" phrase in the body."""

    total = sum(int(match.group(1)) for match in _INVESTED_TOTAL.finditer(context.text))
    if total > 0:
        return TotalResolution(total=float(total), normal=float(total))
    return None


def section_total(context: HoursContext) -> Optional[TotalResolution]:
    """``Total<digits>[.,]?<digits>`` near the hours table.

    A 3 digit suffix after a 3+ digit count is read as a fraction appended to the
    count (``Total1060.500`` gives 1060.5); a bare count longer than 3 digits is
    split into hours and a 2 digit displacement (``Total1065`` gives 10 + 65).
    """

    if not context.section:
        return None
    for pattern in _SECTION_TOTALS:
        match = pattern.search(context.section)
        if not match or not match.group(1):
            continue
        whole = match.group(1)
        suffix = match.group(2) if pattern.groups >= 2 else None
        hours = _leading_int(whole)
        if suffix:
            if len(whole) >= 3 and len(suffix) == 3:
                total = hours + float(f"0.{suffix}")
            else:
                total = float(f"0.{suffix}")
        elif len(whole) > 3:
            displacement = _leading_int(whole[-2:])
            total = float(_leading_int(whole[:-2]) + max(displacement, 0))
        else:
            total = float(hours)
        if total > 0:
            return TotalResolution(total=total)
    return None


def component_sum(context: HoursContext) -> Optional[TotalResolution]:
    total = context.normal + context.extended + context.night
    if total > 0:
        return TotalResolution(total=total)
    return None


def standalone_phrase(context: HoursContext) -> Optional[TotalResolution]:
    """Largest "N horas normal/nocturna/total" mention anywhere in the text."""

    values = [int(match.group(1)) for match in _STANDALONE_HOURS.finditer(context.text)]
    if values and max(values) > 0:
        return TotalResolution(total=float(max(values)), normal=float(max(values)))
    return None


TOTAL_RULES: Tuple[Tuple[str, HoursRule], ...] = (
    ("explicit_invested_total", explicit_invested_total),
    ("section_total", section_total),
    ("component_sum", component_sum),
    ("standalone_phrase", standalone_phrase),
)


def extract_billing_info(text: str) -> str | None:
    for pattern in _BILLING_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group()[:500]
    return None


def extract_hours_summary(text: str) -> HoursSummary | None:
    """Return the reconciled hours summary, or ``None`` when every rule yields zero."""

    context = HoursContext(text=text, section=find_hours_section(text))
    if context.section:
        read_day_table(context)
        read_participant_rows(context)

    for _name, rule in TOTAL_RULES:
        resolution = rule(context)
        if resolution is None:
            continue
        normal = resolution.normal if resolution.normal is not None else context.normal
        return HoursSummary(
            normal=normal,
            extended=context.extended,
            night=context.night,
            travel=context.travel,
            documentation=0.0,
            total=resolution.total,
            billing_info=extract_billing_info(text),
        )
    return None


__all__ = [
    "HoursContext",
    "TOTAL_RULES",
    "TotalResolution",
    "component_sum",
    "explicit_invested_total",
    "extract_billing_info",
    "extract_hours_summary",
    "find_hours_section",
    "read_day_table",
    "read_participant_rows",
    "section_total",
    "standalone_phrase",
]
